# test_expression.py
import unittest

from sabi.narrative.errors import ResolutionWarning, ScriptSyntaxError
from sabi.narrative.expression import evaluate, parse_expression, read_quoted, to_source
from sabi.narrative.types import Expression, Literal, VariableRef


class TestExpressionParsing(unittest.TestCase):
    def test_literal_and_variables(self):
        expr = parse_expression("Hello {playername}, welcome to {town}!")
        self.assertEqual(expr.segments, (
            Literal("Hello "), VariableRef("playername"), Literal(", welcome to "),
            VariableRef("town"), Literal("!"),
        ))
        self.assertEqual(expr.variables(), ("playername", "town"))

    def test_escapes(self):
        expr, end = read_quoted(r'"say \"hi\" \{not a var\} \\ done"', 0)
        self.assertEqual(expr.segments, (Literal('say "hi" {not a var} \\ done'),))
        self.assertEqual(end, len(r'"say \"hi\" \{not a var\} \\ done"'))

    def test_newline_escape(self):
        expr, _ = read_quoted(r'"one\ntwo"', 0)
        self.assertEqual(expr.segments, (Literal("one\ntwo"),))

    def test_read_quoted_stops_at_closing_quote(self):
        text = 'Nayu: "hi" trailing'
        expr, end = read_quoted(text, 6)
        self.assertEqual(expr.segments, (Literal("hi"),))
        self.assertEqual(text[end:], " trailing")

    def test_unterminated_quote(self):
        with self.assertRaises(ScriptSyntaxError) as cm:
            read_quoted('"never closed', 0, source="a.sabi", line=3, line_offset=40)
        self.assertEqual(cm.exception.line, 3)
        self.assertEqual(cm.exception.source, "a.sabi")
        self.assertEqual(cm.exception.offset, 40)

    def test_unterminated_variable(self):
        with self.assertRaises(ScriptSyntaxError):
            parse_expression("Hello {playername")

    def test_bad_variable_names(self):
        for text in ("{}", "{ }", "{1abc}", "{a-b}"):
            with self.subTest(text=text), self.assertRaises(ScriptSyntaxError):
                parse_expression(text)

    def test_unknown_escape_and_stray_brace(self):
        with self.assertRaises(ScriptSyntaxError):
            parse_expression(r"bad \q escape")
        with self.assertRaises(ScriptSyntaxError):
            parse_expression("stray } brace")

    def test_to_source_escapes_specials(self):
        expr = Expression((Literal('a "b" {c}\n'), VariableRef("d")))
        self.assertEqual(to_source(expr), r'"a \"b\" \{c\}\n{d}"')
        again, _ = read_quoted(to_source(expr), 0)
        self.assertEqual(again, expr)


class TestEvaluate(unittest.TestCase):
    def test_resolves_in_order(self):
        expr = parse_expression("{a}-{b}-{a}")
        self.assertEqual(evaluate(expr, {"a": "1", "b": "2"}), "1-2-1")

    def test_missing_variable_is_empty_and_reported(self):
        seen = []
        expr = parse_expression("Hi {who}!")
        with self.assertLogs("sabi.narrative.expression", level="WARNING"):
            out = evaluate(expr, {}, seen.append)
        self.assertEqual(out, "Hi !")
        self.assertEqual(len(seen), 1)
        self.assertIsInstance(seen[0], ResolutionWarning)
        self.assertIn("who", str(seen[0]))

    def test_values_are_read_at_call_time(self):
        variables = {"playername": "Ann"}
        expr = parse_expression("{playername}")
        self.assertEqual(evaluate(expr, variables), "Ann")
        variables["playername"] = "Bo"
        self.assertEqual(evaluate(expr, variables), "Bo")

    def test_empty_expression(self):
        self.assertEqual(evaluate(Expression(), {"x": "y"}), "")


if __name__ == "__main__":
    unittest.main()
