# test_presenter.py
import unittest

from sabi.assets import AssetRegistry, animation_from_dict, character_from_dict
from sabi.narrative.commands import CommandBus
from sabi.narrative.cursor import Interpreter, WaitState
from sabi.narrative.errors import ResolutionWarning
from sabi.narrative.loader import ScriptLoader
from sabi.narrative.parser import loads
from sabi.narrative.presenter import StagePresenter
from sabi.narrative.types import Facing, GuiElement, Position, ScalingMode, ScriptId
from sabi.settings import EffectsCfg, RuntimeCfg
from sabi.ui.anim import Animator, Tween, ease_linear
from sabi.ui.text_model import DialogueReveal, RevealParams, compute_typewriter_timing

SID = ScriptId("Chapter 1", "1")


def registry():
    reg = AssetRegistry()
    reg.add_character(character_from_dict({
        "name": "Nayu",
        "outfits": {"casual": {"neutral": "n.png", "happy": "h.png"}},
    }))
    reg.add_animation(animation_from_dict({
        "name": "spark", "spritesheet": "s.png", "frames": 4, "fps": 8, "frame_width": 16, "frame_height": 16,
    }))
    return reg


class Stage:
    """ Interpreter + presenter wired over one bus, driven like the game loop does. """
    def __init__(self, text, variables=None, settings=None):
        self.bus = CommandBus()
        loader = ScriptLoader("unused")
        loader.register(SID, loads(text))
        self.interp = Interpreter(loader, variables or {}, bus=self.bus, settings=settings)
        self.presenter = StagePresenter(self.bus, registry(), RevealParams(chars_per_sec=10),
                                        EffectsCfg(move_duration=1.0, fade_duration=0.5))
        self.interp.start(SID)

    def frame(self, dt=0.0):
        self.presenter.update(dt)
        return self.interp.tick()

    def press(self):
        waiting = self.interp.state is WaitState.AWAITING_ADVANCE_INPUT
        if self.presenter.on_player_press(waiting):
            self.interp.advance()


class TestStagePresenter(unittest.TestCase):
    def test_appear_look_disappear(self):
        s = Stage("SCENE a\n    (Nayu appears at left looking left as happy)\n    (Nayu looks right)\n"
                  "    (Background changes to hall)\n    (GUI namebox changes to tag sliced)\n    info: \"x\"\n"
                  "    (Nayu disappears)\nCURTAIN\n")
        s.frame()
        nayu = s.presenter.actors["Nayu"]
        self.assertEqual(nayu.x, Position.LEFT.percent)
        self.assertEqual(nayu.facing, Facing.RIGHT)
        self.assertEqual(nayu.sprite, "h.png")
        self.assertEqual(s.presenter.background, "hall")
        self.assertEqual(s.presenter.gui[GuiElement.NAMEBOX].scaling, ScalingMode.SLICED)

        self.assertTrue(s.presenter.dialogue_visible)
        s.presenter.dialogue.complete()
        self.assertTrue(s.presenter.on_player_press())
        s.interp.advance()
        s.frame()
        self.assertNotIn("Nayu", s.presenter.actors)
        self.assertTrue(s.interp.is_halted)

    def test_move_waits_for_tween(self):
        s = Stage("SCENE a\n    (Nayu appears)\n    (Nayu moves to far right)\n    info: \"there\"\nCURTAIN\n")
        s.frame()
        self.assertEqual(s.interp.state, WaitState.AWAITING_EFFECT_COMPLETION)
        s.frame(0.5)
        self.assertEqual(s.interp.state, WaitState.AWAITING_EFFECT_COMPLETION)
        self.assertGreater(s.presenter.actors["Nayu"].x, Position.CENTER.percent)
        s.frame(0.6)
        self.assertEqual(s.presenter.actors["Nayu"].x, Position.FAR_RIGHT.percent)
        self.assertEqual(s.interp.state, WaitState.AWAITING_ADVANCE_INPUT)

    def test_fade_in_and_out(self):
        s = Stage("SCENE a\n    (Nayu fades in)\n    (Nayu fades out)\nCURTAIN\n")
        s.frame()
        self.assertEqual(s.presenter.actors["Nayu"].alpha, 0.0)
        s.frame(0.5)                        # fade in done, fade out starts
        self.assertIn("Nayu", s.presenter.actors)
        self.assertEqual(s.interp.state, WaitState.AWAITING_EFFECT_COMPLETION)
        s.frame(0.5)
        self.assertNotIn("Nayu", s.presenter.actors)
        self.assertTrue(s.interp.is_halted)

    def test_unknown_actor_is_reported_and_skipped(self):
        s = Stage("SCENE a\n    (Ghost moves to left)\n    (Ghost appears)\n    info: \"after\"\nCURTAIN\n")
        out = s.frame()
        self.assertEqual(out[-1].verb, "say")
        self.assertEqual(len(s.interp.diagnostics), 2)
        self.assertEqual(s.presenter.actors, {})

    def test_unknown_emotion_is_reported(self):
        s = Stage("SCENE a\n    (Nayu fades in as furious)\n    info: \"after\"\nCURTAIN\n")
        s.frame()
        self.assertNotIn("Nayu", s.presenter.actors)
        self.assertEqual(s.interp.state, WaitState.AWAITING_ADVANCE_INPUT)

    def test_inline_emotion_off_stage_is_reported(self):
        s = Stage("SCENE a\n    Nayu: (happy) \"hi\"\nCURTAIN\n")
        s.frame()
        self.assertEqual(len(s.interp.diagnostics), 1)
        self.assertIsInstance(s.interp.diagnostics[0], ResolutionWarning)
        self.assertEqual(s.presenter.dialogue.current.text, "hi")
        self.assertEqual(s.interp.state, WaitState.AWAITING_ADVANCE_INPUT)

    def test_undefined_inline_emotion_is_reported(self):
        s = Stage("SCENE a\n    (Nayu appears)\n    Nayu: (furious) \"hmph\"\nCURTAIN\n")
        s.frame()
        self.assertIsInstance(s.interp.diagnostics[-1], ResolutionWarning)
        self.assertEqual(s.presenter.actors["Nayu"].emotion, "neutral")

    def test_inline_emotion_updates_actor(self):
        s = Stage("SCENE a\n    (Nayu appears)\n    Nayu: (happy) \"Yay\"\nCURTAIN\n")
        s.frame()
        self.assertEqual(s.presenter.actors["Nayu"].emotion, "happy")
        self.assertEqual(s.presenter.dialogue.current.text, "Yay")

    def test_animation(self):
        s = Stage("SCENE a\n    (Animation spark appears at 10 20 layer 5)\n    (Animation spark moves to 30 40)\n"
                  "    (Animation spark fades out)\nCURTAIN\n")
        s.frame()
        spark = s.presenter.animations["spark"]
        self.assertEqual(spark.layer, 5)
        self.assertEqual(spark.scale, 1.0)
        s.frame(1.0)
        self.assertEqual(tuple(spark.position), (30.0, 40.0))
        self.assertEqual(spark.frame, 0)
        s.frame(0.5)
        self.assertNotIn("spark", s.presenter.animations)

    def test_log_lines_kept(self):
        s = Stage("SCENE a\n    {log \"hello {playername}\"}\nCURTAIN\n", {"playername": "Kai"})
        s.frame()
        self.assertEqual(list(s.presenter.log_lines), ["hello Kai"])

    def test_press_advances_past_a_waiting_log(self):
        s = Stage("SCENE a\n    {log \"x\"}\n    info: \"after\"\nCURTAIN\n",
                  settings=RuntimeCfg(log_waits_for_advance=True))
        s.frame()
        self.assertEqual(s.interp.state, WaitState.AWAITING_ADVANCE_INPUT)
        self.assertFalse(s.presenter.dialogue_visible)
        s.press()
        s.frame()
        self.assertEqual(s.presenter.dialogue.current.text, "after")
        self.assertEqual(s.interp.diagnostics, [])

    def test_press_without_line_or_wait_does_nothing(self):
        s = Stage("SCENE a\n    (Nayu appears)\n    (Nayu moves to left)\n    info: \"x\"\nCURTAIN\n")
        s.frame()
        s.press()
        self.assertEqual(s.interp.state, WaitState.AWAITING_EFFECT_COMPLETION)
        self.assertEqual(s.interp.diagnostics, [])

    def test_press_skips_then_advances(self):
        s = Stage("SCENE a\n    Nayu: \"Hello there\"\n    Nayu: \"Again\"\nCURTAIN\n")
        s.frame()
        self.assertTrue(s.presenter.dialogue.revealing)
        self.assertFalse(s.presenter.on_player_press())     # completes the line
        self.assertEqual(s.presenter.dialogue.current.visible_text, "Hello there")
        self.assertTrue(s.presenter.on_player_press())      # now advances
        self.assertFalse(s.presenter.dialogue_visible)
        self.assertTrue(s.interp.advance())
        s.frame()
        self.assertEqual(s.presenter.dialogue.current.text, "Again")


class TestReveal(unittest.TestCase):
    def test_typewriter_timing(self):
        rp = RevealParams(chars_per_sec=10, pause_short_s=0.5, pause_long_s=1.0)
        total, cm = compute_typewriter_timing("a,b", rp)
        # a=0.1, ','=0.1, b=0.1+0.5 pause
        self.assertAlmostEqual(total, 0.8)
        self.assertEqual(len(cm), 4)
        self.assertAlmostEqual(cm[-1], 1.0)

    def test_newline_is_not_a_visible_char(self):
        total, cm = compute_typewriter_timing("a\nb", RevealParams(chars_per_sec=10, pause_long_s=1.0))
        self.assertEqual(len(cm), 3)
        self.assertAlmostEqual(total, 1.2)

    def test_visible_text_grows(self):
        reveal = DialogueReveal(RevealParams(chars_per_sec=10))
        reveal.show("Nayu", "abcd")
        self.assertEqual(reveal.current.visible_text, "")
        reveal.update(0.25)
        self.assertEqual(reveal.current.visible_text, "ab")
        reveal.update(1.0)
        self.assertEqual(reveal.current.visible_text, "abcd")
        self.assertFalse(reveal.revealing)

    def test_empty_line_is_finished(self):
        reveal = DialogueReveal()
        reveal.show("", "")
        self.assertFalse(reveal.revealing)
        self.assertTrue(reveal.on_player_press())


class TestAnimator(unittest.TestCase):
    class Box:
        x = 0.0
        pos = (0.0, 0.0)

    def test_tween_reaches_end_and_fires_once(self):
        box, fired = self.Box(), []
        anim = Animator()
        anim.add(Tween(box, "x", 0.0, 10.0, 1.0, ease_linear, on_done=lambda: fired.append(1)))
        anim.update(0.5)
        self.assertAlmostEqual(box.x, 5.0)
        anim.update(0.6)
        anim.update(0.1)
        self.assertEqual(box.x, 10.0)
        self.assertEqual(fired, [1])
        self.assertFalse(anim.busy)

    def test_tuple_values(self):
        box = self.Box()
        anim = Animator()
        anim.add(Tween(box, "pos", (0.0, 0.0), (10.0, 20.0), 2.0, ease_linear))
        anim.update(1.0)
        self.assertEqual(box.pos, (5.0, 10.0))

    def test_new_tween_on_same_attr_finishes_old(self):
        box, fired = self.Box(), []
        anim = Animator()
        anim.add(Tween(box, "x", 0.0, 10.0, 1.0, on_done=lambda: fired.append("old")))
        anim.add(Tween(box, "x", 10.0, 0.0, 1.0))
        self.assertEqual(fired, ["old"])
        self.assertEqual(len(anim), 1)

    def test_cancel_skips_callbacks(self):
        box, fired = self.Box(), []
        anim = Animator()
        anim.add(Tween(box, "x", 0.0, 1.0, 1.0, on_done=lambda: fired.append(1)))
        anim.cancel(box)
        anim.update(2.0)
        self.assertEqual(fired, [])


if __name__ == "__main__":
    unittest.main()
