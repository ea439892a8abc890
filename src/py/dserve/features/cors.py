from ..http.model import HTTPResponse

# SEE: https://developer.mozilla.org/en-US/docs/Web/HTTP/CORS

ALLOWED_METHODS: str = "OPTIONS, GET, HEAD"


def corsHeaders(origin: str | None) -> dict[str, str]:
	"""Returns the fixed set of CORS headers for the configured `origin`,
	nothing when CORS is not configured."""
	if not origin:
		return {}
	return {
		"Access-Control-Allow-Origin": origin,
		"Access-Control-Allow-Headers": "Accept, Range",
		"Access-Control-Request-Methods": ALLOWED_METHODS,
		# Lets scripts read the hash and follow redirects themselves
		"Access-Control-Expose-Headers": "X-File-Hash, Location",
	}


def setCORSHeaders(response: HTTPResponse, origin: str | None) -> HTTPResponse:
	"""Takes the given response and returns it with the CORS headers set,
	if any."""
	if origin:
		response.setHeaders(corsHeaders(origin))
	return response


# EOF
