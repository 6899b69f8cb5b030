"""
Add a comment rendered from a Jinja2 template.

    action = add-soy-comment change-merged
    action = add-velocity-comment inline Change {{ changeNumber }} merged

The first parameter names a template file (`<templates dir>/<name>.j2`); `inline` takes the
remaining parameters as the template text.
"""
import logging

from jinja2 import TemplateError, TemplateNotFound

from report.renderer import CommentRenderer
from workflow.actions.base import Action

logger = logging.getLogger(__name__)

INLINE = 'inline'


class AddTemplateComment(Action):
    def __init__(self, renderer: CommentRenderer):
        self.renderer = renderer

    def build_comment(self, its, action_request, properties) -> str:
        template = action_request.get_parameter(1)
        if not template:
            logger.error("No template name given in %s", action_request)
            return ''
        try:
            if template == INLINE:
                source = ' '.join(action_request.get_parameters()[1:])
                return self.renderer.render_inline(source, properties, its)
            return self.renderer.render_template(template, properties, its)
        except TemplateNotFound:
            logger.error("Failed to read template %s from %s", template, self.renderer.templates_dir)
        except TemplateError:
            logger.error("Failed to render template %s", template, exc_info=True)
        return ''

    def execute(self, its, target, action_request, properties):
        comment = self.build_comment(its, action_request, properties)
        if comment:
            its.add_comment(target, comment)
