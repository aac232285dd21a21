from groupbot.nsfw import Picture, auto_judge, judge


def test_judge_neutral():
    assert judge(Picture(neutral=0.9)) == "普通哦"


def test_judge_drawing_with_tags():
    result = judge(Picture(drawings=0.6, hentai=0.5, porn=0.4, neutral=0.1))
    assert result.split(" ") == ["二次元", "hentai", "porn"]


def test_judge_low_neutral_counts_as_drawing():
    assert judge(Picture(drawings=0.0, neutral=0.1)) == "二次元"


def test_judge_exact_threshold_is_real_photo():
    result = judge(Picture(neutral=0.3, sexy=0.5))
    assert result.split(" ") == ["三次元", "hso"]


def test_auto_judge_neutral_is_silent():
    assert auto_judge(Picture(neutral=0.5, porn=0.9)) is None


def test_auto_judge_without_tags_is_silent():
    assert auto_judge(Picture(drawings=0.9, neutral=0.1)) is None


def test_auto_judge_real_photo():
    result = auto_judge(Picture(drawings=0.1, sexy=0.8, neutral=0.1))
    assert result.split(" ") == ["三次元", "hso"]


def test_auto_judge_all_tags():
    result = auto_judge(Picture(drawings=0.9, hentai=0.9, porn=0.9, sexy=0.9))
    assert result.split(" ")[1:] == ["hentai", "porn", "hso"]