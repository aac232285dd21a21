import random
import subprocess
from unittest import mock

import mido
import pytest

from groupbot.midi import (
    TICKS_PER_QUARTER,
    EarTraining,
    ScoreParseError,
    note_name,
    octave,
    parse_note,
    parse_score,
    random_target,
    render_wav,
    str_to_music,
    write_midi,
)


def _spell(pitch):
    return note_name(pitch) + str(pitch // 12)


def test_octave_middle_c():
    assert octave(0, 5) == 60


def test_octave_clamps_level():
    assert octave(3, 200) == octave(3, 10)


def test_octave_zero_level_returns_base():
    assert octave(7, 0) == 7


def test_octave_stays_in_midi_range():
    for base in range(12):
        result = octave(base, 10)
        assert result <= 127
        assert result % 12 == base


def test_parse_note_default_octave():
    assert parse_note("A") == 69
    assert parse_note("C") == 60


def test_parse_note_sharp_equals_flat():
    assert parse_note("C#6") == parse_note("Db6")


def test_parse_note_ignores_spaces():
    assert parse_note("G b 5") == parse_note("Gb5") == 66


def test_note_name_round_trip():
    for pitch in range(55, 55 + 34):
        assert parse_note(_spell(pitch)) == pitch


def test_note_name_by_pitch_class():
    assert note_name(60 + 12) == "C"
    assert note_name(61) == "Db"


def test_parse_score_quarter_notes():
    notes = parse_score("CDE")
    assert [n.pitch for n in notes] == [60, 62, 64]
    assert all(n.duration == TICKS_PER_QUARTER for n in notes)
    assert all(n.delay == 0 for n in notes)


def test_parse_score_ignores_spaces():
    assert parse_score("C D E") == parse_score("CDE")


def test_length_modifiers():
    longer, shorter = parse_score("C<1C<-1")
    assert longer.duration == 2 * TICKS_PER_QUARTER
    assert shorter.duration == TICKS_PER_QUARTER // 2


def test_rest_delays_next_note():
    notes = parse_score("CRD")
    assert len(notes) == 2
    assert notes[1].delay == TICKS_PER_QUARTER
    assert parse_score("CR<1D")[1].delay == 2 * parse_score("C")[0].duration


def test_unknown_character_raises():
    with pytest.raises(ScoreParseError, match="第1个位置"):
        parse_score("CX")


def test_write_midi_round_trip(tmp_path):
    path = tmp_path / "song.mid"
    write_midi(path, "CD")
    midi_file = mido.MidiFile(str(path))
    assert midi_file.ticks_per_beat == TICKS_PER_QUARTER
    messages = list(midi_file.tracks[0])
    ons = [m for m in messages if m.type == "note_on"]
    assert [m.note for m in ons] == [60, 62]
    assert all(m.velocity == 120 for m in ons)
    programs = [m.program for m in messages if m.type == "program_change"]
    assert programs == [40]
    names = [m.name for m in messages if m.type == "instrument_name"]
    assert names == ["Violin"]


def test_write_midi_keeps_existing_file(tmp_path):
    path = tmp_path / "song.mid"
    write_midi(path, "C")
    before = path.read_bytes()
    write_midi(path, "CDEFG")
    assert path.read_bytes() == before


def test_write_midi_invalid_creates_nothing(tmp_path):
    path = tmp_path / "bad.mid"
    with pytest.raises(ScoreParseError):
        write_midi(path, "C?")
    assert not path.exists()


def test_str_to_music_runs_timidity(tmp_path):
    midi_path = str(tmp_path / "a.mid")
    with mock.patch("groupbot.midi.subprocess.run") as run:
        wav = str_to_music("CDE", midi_path)
    assert wav == str(tmp_path / "a.wav")
    args = run.call_args.args[0]
    assert args == ["timidity", midi_path, "-Ow", "-o", wav]


def test_render_wav_failure_raises(tmp_path):
    error = subprocess.CalledProcessError(1, "timidity")
    with mock.patch("groupbot.midi.subprocess.run", side_effect=error):
        with pytest.raises(subprocess.CalledProcessError):
            render_wav(tmp_path / "a.mid", tmp_path / "a.wav")


def test_random_target_range():
    rng = random.Random(1)
    for _ in range(200):
        assert 55 <= random_target(rng) < 55 + 34


def test_training_answer_spells_target():
    game = EarTraining(False, random.Random(2))
    assert parse_note(game.answer) == game.target


def test_correct_first_try_scores_full():
    game = EarTraining(False, random.Random(3))
    outcome = game.submit(1, game.answer)
    assert outcome.correct and outcome.advanced
    assert game.scores == {1: 1.0}
    assert game.round == 2


def test_correct_after_one_mistake_scores_half():
    game = EarTraining(False, random.Random(4))
    game.submit(1, _spell(game.target + 1))
    outcome = game.submit(1, game.answer)
    assert outcome.errors == 1
    assert game.scores == {1: 0.5}


def test_individual_three_mistakes_move_on():
    game = EarTraining(False, random.Random(5))
    first_answer = game.answer
    wrong = _spell(game.target + 1)
    outcomes = [game.submit(1, wrong) for _ in range(3)]
    assert [o.advanced for o in outcomes] == [False, False, True]
    assert outcomes[-1].answer == first_answer
    assert not outcomes[-1].correct
    assert game.scores == {}
    assert game.errors == 0


def test_team_allows_ten_mistakes():
    game = EarTraining(True, random.Random(6))
    wrong = _spell(game.target + 1)
    outcomes = [game.submit(7, wrong) for _ in range(10)]
    assert not any(o.advanced for o in outcomes[:9])
    assert outcomes[9].advanced
    assert game.scores == {}


def test_game_finishes_after_five_rounds():
    game = EarTraining(True, random.Random(7))
    outcomes = [game.submit(9, game.answer) for _ in range(5)]
    assert outcomes[-1].finished
    assert not any(o.finished for o in outcomes[:-1])
    assert game.scores == {9: 5 * 1.0}
    with pytest.raises(RuntimeError):
        game.submit(9, "C")