from paceguard_cli.detectors.attribution import AttributionDetector, Author, classify


def test_plain_message_is_human() -> None:
    assert classify("fix off-by-one in parser") is Author.HUMAN


def test_empty_message_is_human() -> None:
    assert classify("") is Author.HUMAN


def test_coauthor_trailer_marks_agent() -> None:
    message = "Add parser\n\nCo-Authored-By: Claude <noreply@anthropic.com>\n"
    assert classify(message) is Author.AGENT


def test_trailer_match_is_case_insensitive() -> None:
    assert classify("tweak\n\nco-authored-by: claude opus <x@y>") is Author.AGENT


def test_other_coauthors_stay_human() -> None:
    assert classify("pairing\n\nCo-Authored-By: Jane Doe <jane@example.com>") is Author.HUMAN


def test_custom_marker() -> None:
    detector = AttributionDetector(r"Assisted-by: robot")
    assert detector.classify("x\n\nAssisted-by: Robot") is Author.AGENT
    assert detector.classify("x\n\nCo-Authored-By: Claude") is Author.HUMAN
