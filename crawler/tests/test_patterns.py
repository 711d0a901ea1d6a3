from crawler.extractors.clean import clip, normalize_url, strip_site_suffix
from crawler.extractors.patterns import collect_matches, compile_all, decode_unicode, first_match


def test_decode_unicode_handles_json_and_html_escapes():
    assert decode_unicode("https:\\/\\/cdn.test\\/v.mp4") == "https://cdn.test/v.mp4"
    assert decode_unicode("Caf\\u00e9 &amp; Ch\\u00e1") == "Café & Chá"
    assert decode_unicode("") == ""


def test_first_match_respects_pattern_order_and_validator():
    patterns = compile_all([r'"video"\s*:\s*"([^"]+)"', r'"url"\s*:\s*"([^"]+)"'])
    text = '{"url": "https://cdn.test/a.mp4", "video": "poster.jpg"}'
    assert first_match(text, patterns) == "poster.jpg"
    assert first_match(text, patterns, validator=lambda v: v.startswith("http")) == "https://cdn.test/a.mp4"
    assert first_match("", patterns) is None


def test_collect_matches_is_distinct_and_capped():
    patterns = compile_all([r"https://cdn\.test/\w+\.mp4"])
    text = "https://cdn.test/a.mp4 https://cdn.test/b.mp4 https://cdn.test/a.mp4 https://cdn.test/c.mp4"
    assert collect_matches(text, patterns, limit=2) == ["https://cdn.test/a.mp4", "https://cdn.test/b.mp4"]


def test_clean_helpers():
    assert normalize_url("https://shopee.com.br/x-i.1.2?sp_atk=1#top") == "https://shopee.com.br/x-i.1.2"
    assert clip("  abcdef  ", 3) == "abc"
    assert clip(None) == ""
    assert strip_site_suffix("Fone Bluetooth | Shopee Brasil") == "Fone Bluetooth"
    assert strip_site_suffix("Fone Bluetooth - Shopee") == "Fone Bluetooth"
