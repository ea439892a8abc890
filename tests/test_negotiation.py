from dserve.http.negotiation import negotiate, parseAccept

OFFERS: list[str] = ["application/json", "text/html"]


def test_no_header_picks_first_offer():
	assert negotiate(None, OFFERS) == "application/json"
	assert negotiate("", OFFERS) == "application/json"


def test_browser():
	accept = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
	assert negotiate(accept, OFFERS) == "text/html"


def test_wildcard():
	assert negotiate("*/*", OFFERS) == "application/json"


def test_quality():
	assert negotiate("text/html;q=0.5, application/json;q=0.9", OFFERS) == (
		"application/json"
	)
	assert negotiate("application/json;q=0.1, text/*", OFFERS) == "text/html"


def test_client_order_breaks_ties():
	assert negotiate("text/html, application/json", OFFERS) == "text/html"


def test_not_acceptable():
	assert negotiate("image/png", OFFERS) is None
	assert negotiate("text/html;q=0, application/json;q=0", OFFERS) is None


def test_specific_range_wins():
	# `text/html` is excluded even though `*/*` would accept it
	assert negotiate("*/*, text/html;q=0", OFFERS) == "application/json"
	assert negotiate("*/*;q=0, text/html", OFFERS) == "text/html"


def test_parse_accept():
	ranges = parseAccept("text/html;level=1;q=0.7, bogus, */*;q=x")
	assert [(_.type, _.subtype, _.q) for _ in ranges] == [
		("text", "html", 0.7),
		("*", "*", 0.0),
	]


# EOF
