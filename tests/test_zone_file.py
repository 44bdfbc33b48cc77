from datetime import datetime, timezone

from hypothesis import given
from hypothesis import strategies as st

from hnssec.zone_file import header, normalize, render, zone_serial

SERIAL = "2026101901"
APEX_A = "example.test. 21600 IN A 203.0.113.5"
WILDCARD_A = "*.example.test. 21600 IN A 203.0.113.5"


def _lines(text):
    return [line.strip() for line in text.splitlines()]


def test_zone_serial():
    assert zone_serial(datetime(2026, 1, 2, 23, 59, tzinfo=timezone.utc)) == "2026010201"


def test_header_layout(domain):
    text = header(domain, SERIAL)
    lines = _lines(text)

    assert "$ORIGIN example.test." in lines
    assert "@ IN SOA ns.example.test. admin.nic.example.test. (" in lines
    assert "2026101901 ; SERIAL ; current date + increment" in " ".join(text.split())
    assert "@ IN NS ns.example.test." in lines
    assert "ns.example.test. IN A 203.0.113.5" in lines
    assert lines.count("@ IN NS ns.example.test.") == 1


def test_header_does_not_state_the_apex_a_record(domain):
    for line in _lines(header(domain, SERIAL)):
        if line.startswith(";"):
            continue
        assert not line.startswith("@ IN A")
        assert not line.startswith("example.test. IN A")


def test_apex_a_record_appears_exactly_once(signed_zone, domain):
    lines = _lines(render(signed_zone, domain, SERIAL))

    assert lines.count(APEX_A) == 1
    assert lines.count(WILDCARD_A) == 1


def test_rendered_zone_has_records_and_signatures(signed_zone, domain):
    lines = _lines(render(signed_zone, domain, SERIAL))

    assert any(line.startswith("_443._tcp.example.test. 21600 IN TLSA 3 1 1 ") for line in lines)
    assert any(line.startswith("*.example.test. 21600 IN TLSA 3 1 1 ") for line in lines)
    assert sum(line.startswith("example.test. 21600 IN DNSKEY ") for line in lines) == 2
    assert sum(" IN RRSIG " in line for line in lines) == 5


def test_signatures_follow_their_owner(signed_zone, domain):
    lines = [line for line in _lines(render(signed_zone, domain, SERIAL)) if line.startswith("*.")]
    kinds = [line.split()[3] for line in lines]

    assert kinds.index("RRSIG") > kinds.index("A")
    assert kinds.index("RRSIG") > kinds.index("TLSA")
    assert kinds[-2:] == ["RRSIG", "RRSIG"]


def test_render_is_deterministic(signed_zone, domain):
    assert render(signed_zone, domain, SERIAL) == render(signed_zone, domain, SERIAL)


def test_render_is_tidy(signed_zone, domain):
    text = render(signed_zone, domain, SERIAL)
    body = text.split("; DANE/DNSSEC\n;\n", 1)[1]

    assert "\n\n\n" not in text
    assert "  " not in body
    assert text.endswith("\n")
    assert not text.endswith("\n\n")


@given(st.text(alphabet=" \nab;.", max_size=60))
def test_normalize(text):
    result = normalize(text)

    assert "\n\n\n" not in result
    assert "  " not in result
    assert result.endswith("\n")
    assert normalize(result) == result
