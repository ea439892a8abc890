from typing import NamedTuple

# SEE: https://www.rfc-editor.org/rfc/rfc9110#name-accept


class MediaRange(NamedTuple):
	type: str
	subtype: str
	q: float
	index: int


class Preference(NamedTuple):
	q: float
	specificity: int
	index: int


def parseAccept(text: str) -> list[MediaRange]:
	"""Parses an `Accept` header value into media ranges, ignoring the
	ones that are malformed."""
	res: list[MediaRange] = []
	for i, item in enumerate(text.split(",")):
		params = item.split(";")
		media = params[0].strip().lower()
		if "/" not in media:
			continue
		t, s = media.split("/", 1)
		q: float = 1.0
		for param in params[1:]:
			k, _, v = param.partition("=")
			if k.strip().lower() == "q":
				try:
					q = max(0.0, min(1.0, float(v.strip())))
				except ValueError:
					q = 0.0
		res.append(MediaRange(t.strip(), s.strip(), q, i))
	return res


def preference(offer: str, ranges: list[MediaRange]) -> Preference | None:
	"""Returns how much the `offer` media type is wanted, using the most
	specific matching range."""
	t, _, s = offer.lower().partition("/")
	best: Preference | None = None
	for r in ranges:
		if r.type == t and r.subtype == s:
			specificity = 2
		elif r.type == t and r.subtype == "*":
			specificity = 1
		elif r.type == "*" and r.subtype == "*":
			specificity = 0
		else:
			continue
		if best is None or specificity > best.specificity:
			best = Preference(r.q, specificity, r.index)
	return best


def negotiate(accept: str | None, offers: list[str]) -> str | None:
	"""Picks the offer the client prefers given its `Accept` header. No
	header means anything goes, so the first offer is picked. Returns
	`None` when none of the offers is acceptable."""
	if not offers:
		return None
	if accept is None or not accept.strip():
		return offers[0]
	ranges = parseAccept(accept)
	candidates: list[tuple[Preference, int, str]] = []
	for i, offer in enumerate(offers):
		p = preference(offer, ranges)
		if p is not None and p.q > 0:
			candidates.append((p, i, offer))
	if not candidates:
		return None
	# Highest quality first, then most specific, then as ordered by the
	# client, then as ordered by us.
	candidates.sort(key=lambda _: (-_[0].q, -_[0].specificity, _[0].index, _[1]))
	return candidates[0][2]


# EOF
