import unittest

from workflow.action_request import ActionRequest
from workflow.rules import Condition, Rule, match_rules


class TestActionRequest(unittest.TestCase):
    def test_parse(self):
        request = ActionRequest.parse('add-comment  Change was merged')
        self.assertEqual(request.name, 'add-comment')
        self.assertEqual(request.get_parameter(0), 'add-comment')
        self.assertEqual(request.get_parameter(1), 'Change')
        self.assertEqual(request.get_parameter(3), 'merged')
        self.assertEqual(request.get_parameter(4), '')
        self.assertEqual(request.get_parameter(-1), '')
        self.assertEqual(request.get_parameters(), ['Change', 'was', 'merged'])
        self.assertEqual(str(request), 'add-comment  Change was merged')

    def test_empty(self):
        request = ActionRequest.parse('')
        self.assertEqual(request.name, '')
        self.assertEqual(request.get_parameters(), [])

    def test_parameters_are_copies(self):
        request = ActionRequest.parse('a b c')
        request.get_parameters().append('d')
        self.assertEqual(request.get_parameters(), ['b', 'c'])

    def test_equality_uses_text(self):
        self.assertEqual(ActionRequest.parse('a b'), ActionRequest.parse('a b'))
        self.assertNotEqual(ActionRequest.parse('a b'), ActionRequest.parse('a  b'))


class TestCondition(unittest.TestCase):
    def test_create(self):
        condition = Condition.create('k', 'value1, value2 ,value3')
        self.assertEqual(condition.values, frozenset({'value1', 'value2', 'value3'}))
        self.assertFalse(condition.negated)

    def test_create_negated(self):
        condition = Condition.create('k', '!,value1')
        self.assertTrue(condition.negated)
        self.assertEqual(condition.values, frozenset({'value1'}))

    def test_create_empty(self):
        condition = Condition.create('k', '')
        self.assertEqual(condition.values, frozenset())
        self.assertFalse(condition.is_met_by({'k': 'anything'}))

    def test_or_within_key(self):
        condition = Condition.create('k', 'value1,value2,value3')
        self.assertTrue(condition.is_met_by({'k': 'value1 value3'}))
        self.assertTrue(condition.is_met_by({'k': 'other value2'}))
        self.assertFalse(condition.is_met_by({'k': 'value4'}))
        self.assertFalse(Condition.create('k', 'value1').is_met_by({}))

    def test_tokens_are_whole_words(self):
        self.assertFalse(Condition.create('k', 'value').is_met_by({'k': 'value1'}))

    def test_negation(self):
        condition = Condition.create('k', '!,value1')
        self.assertTrue(condition.is_met_by({}))
        self.assertTrue(condition.is_met_by({'k': 'value2'}))
        self.assertFalse(condition.is_met_by({'k': 'value2 value1'}))

    def test_str(self):
        self.assertEqual(str(Condition.create('k', '!,b,a')), 'k = !,a,b')


class TestRule(unittest.TestCase):
    def setUp(self):
        self.actions = (ActionRequest.parse('action1'), ActionRequest.parse('action2 param'))

    def test_and_semantics(self):
        rule = Rule('r', (Condition.create('a', 'x'), Condition.create('b', 'y')), self.actions)
        self.assertEqual(rule.action_requests_for({'a': 'x'}), [])
        self.assertEqual(rule.action_requests_for({'b': 'y'}), [])
        self.assertEqual(rule.action_requests_for({'a': 'x', 'b': 'y'}), list(self.actions))

    def test_unconditional(self):
        rule = Rule('r', (), self.actions)
        self.assertEqual(rule.action_requests_for({}), list(self.actions))
        self.assertEqual(rule.action_requests_for({'any': 'thing'}), list(self.actions))

    def test_returned_list_is_fresh(self):
        rule = Rule('r', (), self.actions)
        first = rule.action_requests_for({})
        first.clear()
        self.assertEqual(len(rule.action_requests_for({})), 2)

    def test_match_rules_keeps_order_and_duplicates(self):
        a = ActionRequest.parse('a')
        rules = [
            Rule('r1', (Condition.create('k', 'v'),), (a,)),
            Rule('r2', (Condition.create('k', 'nope'),), (ActionRequest.parse('b'),)),
            Rule('r3', (), (ActionRequest.parse('c'), a)),
        ]
        self.assertEqual([r.name for r in match_rules(rules, {'k': 'v'})], ['a', 'c', 'a'])


if __name__ == '__main__':
    unittest.main()
