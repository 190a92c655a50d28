# test_parser.py
import textwrap
import unittest

from sabi.narrative.errors import ScriptSyntaxError, StructuralError
from sabi.narrative.parser import dumps, format_directive, loads
from sabi.narrative.types import (
    ActionKind, Dialogue, Expression, Facing, Fade, GuiElement, Literal, Log, MAIN_CHARACTER,
    NARRATOR, Position, ScalingMode, Speaker, StageDirection, Target, TargetKind, VariableRef,
)

OPENING = textwrap.dedent("""\
    SCENE opening
        Nayu: "This is dialogue."
        Nayu: (happy) "Emotions can change inline."
        (Scene "next_scene" begins)
    CURTAIN

    SCENE next_scene
        info: "Later that day."
    CURTAIN
""")

FULL = textwrap.dedent("""\
    // every construct once
    SCENE start
        Nayu: (happy) "Hi {playername}, \\"quoted\\" and \\{braced\\}."
        MC: "It's me."
        info: "Narration."
        {log "Met Nayu"}
        (Nayu appears at far left looking right as happy)
        (Nayu appears)
        (Nayu disappears)
        (Nayu fades in looking left at invisible right)
        (Nayu fades out)
        (Nayu moves to center)
        (Nayu looks left)
        (Animation sparkle appears at 40 60.5 scale 2 layer 4)
        (Animation sparkle appears)
        (Animation sparkle fades in)
        (Animation sparkle moves to 10 20)
        (Animation sparkle looks right)
        (Background changes to forest)
        (GUI textbox changes to "plate_blue" sliced)
        (GUI namebox changes to plate)
        (Scene "second" begins)
    CURTAIN

    SCENE second
    CURTAIN
""")


def _only_scene(text):
    script = loads(text)
    return next(iter(script.scenes.values()))


class TestOpeningScenario(unittest.TestCase):
    def test_opening_scene_directives(self):
        script = loads(OPENING)
        self.assertEqual(list(script.scenes), ["opening", "next_scene"])
        scene = script.scene("opening")
        self.assertEqual(len(scene), 3)
        self.assertEqual(scene[0], Dialogue(Speaker.character("Nayu"), Expression((Literal("This is dialogue."),))))
        self.assertEqual(scene[1], Dialogue(Speaker.character("Nayu"),
                                            Expression((Literal("Emotions can change inline."),)), "happy"))
        self.assertEqual(scene[2], StageDirection(Target(TargetKind.SCENE), ActionKind.JUMP, {"name": "next_scene"}))
        self.assertTrue(scene[2].is_jump)

    def test_inline_emotion_does_not_change_text(self):
        scene = loads(OPENING).scene("opening")
        self.assertEqual(scene[0].text, Expression((Literal("This is dialogue."),)))
        self.assertEqual(scene[1].text, Expression((Literal("Emotions can change inline."),)))
        self.assertIsNone(scene[0].emotion)

    def test_missing_jump_target_is_structural_error(self):
        text = OPENING.replace('"next_scene" begins', '"missing_scene" begins')
        with self.assertRaises(StructuralError) as cm:
            loads(text, name="ch1.sabi")
        self.assertIn("missing_scene", str(cm.exception))
        self.assertEqual(cm.exception.line, 4)

    def test_parse_is_deterministic(self):
        self.assertEqual(loads(FULL), loads(FULL))

    def test_line_numbers_recorded(self):
        scene = loads(OPENING).scene("opening")
        self.assertEqual([d.line for d in scene.directives], [2, 3, 4])


class TestDirectives(unittest.TestCase):
    def setUp(self):
        self.scene = loads(FULL).scene("start")

    def test_speakers(self):
        self.assertEqual(self.scene[0].speaker, Speaker.character("Nayu"))
        self.assertEqual(self.scene[1].speaker, MAIN_CHARACTER)
        self.assertEqual(self.scene[2].speaker, NARRATOR)

    def test_dialogue_expression(self):
        d = self.scene[0]
        self.assertEqual(d.emotion, "happy")
        self.assertEqual(d.text.segments, (
            Literal("Hi "), VariableRef("playername"), Literal(', "quoted" and {braced}.'),
        ))

    def test_log(self):
        self.assertEqual(self.scene[3], Log(Expression((Literal("Met Nayu"),))))

    def test_actor_appear_options(self):
        d = self.scene[4]
        self.assertEqual(d.target, Target(TargetKind.ACTOR, "Nayu"))
        self.assertEqual(d.action, ActionKind.APPEAR)
        self.assertEqual(dict(d.params), {
            "position": Position.FAR_LEFT, "facing": Facing.RIGHT, "emotion": "happy",
        })
        self.assertEqual(dict(self.scene[5].params), {})

    def test_actor_other_verbs(self):
        self.assertEqual(self.scene[6].action, ActionKind.DISAPPEAR)
        fade_in = self.scene[7]
        self.assertEqual(fade_in.action, ActionKind.FADE)
        self.assertEqual(dict(fade_in.params), {
            "direction": Fade.IN, "facing": Facing.LEFT, "position": Position.INVISIBLE_RIGHT,
        })
        self.assertEqual(dict(self.scene[8].params), {"direction": Fade.OUT})
        self.assertEqual(dict(self.scene[9].params), {"position": Position.CENTER})
        self.assertEqual(self.scene[10].action, ActionKind.LOOK)
        self.assertEqual(self.scene[10].params["facing"], Facing.LEFT)

    def test_animation(self):
        d = self.scene[11]
        self.assertEqual(d.target, Target(TargetKind.ANIMATED, "sparkle"))
        self.assertEqual(dict(d.params), {"position": (40.0, 60.5), "scale": 2.0, "layer": 4})
        self.assertEqual(dict(self.scene[12].params), {})
        self.assertEqual(self.scene[13].params["direction"], Fade.IN)
        self.assertEqual(self.scene[14].params["position"], (10.0, 20.0))
        self.assertEqual(self.scene[15].params["facing"], Facing.RIGHT)

    def test_background_and_gui(self):
        bg = self.scene[16]
        self.assertEqual(bg.target.kind, TargetKind.BACKGROUND)
        self.assertEqual(bg.params["id"], "forest")
        gui = self.scene[17]
        self.assertEqual(gui.target, Target(TargetKind.GUI, "textbox"))
        self.assertEqual(dict(gui.params), {
            "element": GuiElement.TEXTBOX, "id": "plate_blue", "scaling": ScalingMode.SLICED,
        })
        self.assertNotIn("scaling", self.scene[18].params)

    def test_params_are_read_only(self):
        with self.assertRaises(TypeError):
            self.scene[4].params["emotion"] = "sad"


class TestSyntaxErrors(unittest.TestCase):
    def assertSyntaxError(self, text, line=None):
        with self.assertRaises(ScriptSyntaxError) as cm:
            loads(textwrap.dedent(text), name="bad.sabi")
        err = cm.exception
        self.assertEqual(err.source, "bad.sabi")
        if line is not None:
            self.assertEqual(err.line, line)
        return err

    def test_unknown_verb(self):
        err = self.assertSyntaxError("""\
            SCENE a
                (Nayu dances wildly)
            CURTAIN
        """, line=2)
        self.assertEqual(err.token, "dances")
        self.assertEqual(err.column, 11)
        self.assertIn("unknown verb", err.message)

    def test_byte_offset_counts_utf8(self):
        err = self.assertSyntaxError('SCENE a\n    info: "é"\n    (Nayu dances)\nCURTAIN\n', line=3)
        # "SCENE a\n" = 8 bytes, '    info: "é"\n' = 15 bytes, then 10 bytes to "dances"
        self.assertEqual(err.offset, 8 + 15 + 10)

    def test_missing_curtain(self):
        self.assertSyntaxError("""\
            SCENE a
                info: "never closed"
        """)

    def test_nested_scene(self):
        self.assertSyntaxError("""\
            SCENE a
            SCENE b
            CURTAIN
        """, line=2)

    def test_text_outside_scene(self):
        self.assertSyntaxError("""\
            info: "loose"
            SCENE a
            CURTAIN
        """, line=1)

    def test_empty_script(self):
        self.assertSyntaxError("// only a comment\n\n")
        self.assertSyntaxError("")

    def test_unterminated_quote(self):
        self.assertSyntaxError("""\
            SCENE a
                Nayu: "oops
            CURTAIN
        """, line=2)

    def test_unterminated_direction(self):
        self.assertSyntaxError("""\
            SCENE a
                (Nayu appears
            CURTAIN
        """, line=2)

    def test_bad_options(self):
        for body in ("(Nayu appears at middle)",
                     "(Nayu appears at left at right)",
                     "(Nayu looks up)",
                     "(Animation spark appears scale -1)",
                     "(Animation spark appears layer 1.5)",
                     "(Background changes forest)",
                     "(GUI sidebar changes to x)",
                     '(Scene "x" starts)',
                     "Nayu says hi",
                     'Nayu: "hi" extra'):
            with self.subTest(body=body):
                self.assertSyntaxError(f"SCENE a\n    {body}\nCURTAIN\n", line=2)

    def test_duplicate_scene_is_structural(self):
        with self.assertRaises(StructuralError):
            loads("SCENE a\nCURTAIN\nSCENE a\nCURTAIN\n")

    def test_actor_names_not_checked_at_parse_time(self):
        scene = _only_scene('SCENE a\n    (Nobody appears)\n    Nobody: "hi"\nCURTAIN\n')
        self.assertEqual(len(scene), 2)


class TestFormatting(unittest.TestCase):
    def test_round_trip(self):
        for text in (OPENING, FULL):
            with self.subTest(text=text[:20]):
                script = loads(text)
                self.assertEqual(loads(dumps(script)), script)

    def test_format_directive(self):
        scene = loads(FULL).scene("start")
        self.assertEqual(format_directive(scene[1]), 'MC: "It\'s me."')
        self.assertEqual(format_directive(scene[3]), '{log "Met Nayu"}')
        self.assertEqual(format_directive(scene[4]), "(Nayu appears at far left looking right as happy)")
        self.assertEqual(format_directive(scene[11]), "(Animation sparkle appears at 40 60.5 scale 2 layer 4)")
        self.assertEqual(format_directive(scene[19]), '(Scene "second" begins)')

    def test_bom_and_crlf(self):
        text = "\ufeffSCENE a\r\n    info: \"hi\"\r\nCURTAIN\r\n"
        self.assertEqual(len(loads(text).scene("a")), 1)

    def test_unicode_separators_stay_inside_text(self):
        text = "SCENE a\n    info: \"x\u2028y\x0cz\x85w\x1e\"\nCURTAIN\n"
        script = loads(text)
        self.assertEqual(script.scene("a")[0].text, Expression((Literal("x\u2028y\x0cz\x85w\x1e"),)))
        self.assertEqual(loads(dumps(script)), script)

    def test_line_numbers_after_crlf(self):
        with self.assertRaises(ScriptSyntaxError) as cm:
            loads("SCENE a\r\n    info: \"ok\"\r\n    (Nayu dances)\r\nCURTAIN\r\n")
        err = cm.exception
        self.assertEqual(err.line, 3)
        self.assertEqual(err.offset, 9 + 16 + 10)


if __name__ == "__main__":
    unittest.main()
