import re
from enum import Enum
from typing import Any, Iterable

from .json import jsonstr
from .logging import warning

# --
# Direct template injection: a template marks one region with a begin and an
# end comment, and the region is replaced by a single line binding the name
# given in the begin marker to the JSON-serialized data.
#
# ```
# <script>
# /** @inject-begin DATA */
# const DATA = {"path": "/", "list": []};
# /** @inject-end */
# </script>
# ```


class TemplateState(Enum):
	Initial = 0
	Replacement = 1
	After = 2


RE_BEGIN = re.compile(r"/\*\*\s+@inject-begin\s+(?P<name>\S+)\s+\*/")
RE_END = re.compile(r"/\*\*\s+@inject-end\s+\*/")


def splitTemplate(text: str) -> list[str]:
	"""Splits a template into lines, so that joining them back with `\\n`
	gives back the original text."""
	return text.split("\n")


def applyDirectTemplate(lines: Iterable[str], data: Any) -> str:
	"""Returns the template with the first marked region replaced by a
	`const NAME = <data>;` line. A begin marker without an end marker drops
	everything after the binding line."""
	output: list[str] = []
	state: TemplateState = TemplateState.Initial
	for line in lines:
		match state:
			case TemplateState.Initial:
				if matched := RE_BEGIN.search(line):
					state = TemplateState.Replacement
					output.append(f"const {matched.group('name')} = {jsonstr(data)};")
				else:
					output.append(line)
			case TemplateState.Replacement:
				if RE_END.search(line):
					state = TemplateState.After
			case TemplateState.After:
				output.append(line)
	if state is TemplateState.Replacement:
		warning("Unexpected end of template, missing @inject-end marker")
	return "\n".join(output)


# EOF
