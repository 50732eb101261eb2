from legaldesk.utils import sanitize_input, sanitize_list


def test_sanitize_removes_script_tags():
    s = "<script>alert(1)</script>Bob"
    out = sanitize_input(s)
    assert "script" not in out.lower()
    assert "bob" in out.lower()


def test_sanitize_keeps_plain_text_and_none():
    assert sanitize_input("  Contract Law \x00") == "Contract Law"
    assert sanitize_input(None) is None


def test_sanitize_list_drops_empty_items():
    assert sanitize_list(["<b>Review</b>", "<br>", " Call "]) == ["Review", "Call"]
    assert sanitize_list(None) is None
