# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Shell scripts run inside the consolidated container through ``bash -c``.

The PID registry is a plain file shared by every tail launched in one
invocation. Each tailing shell appends its own pid with a single short
``O_APPEND`` write, which the kernel applies atomically, so concurrent
readers never garble each other's lines. Only the cleanup script reads it.
"""
import shlex
from typing import Optional
from jinja2 import Environment, StrictUndefined

TAIL_TEMPLATE = """\
[ -f {{ log_path | q }} ] || exit 0
echo $$ >> {{ registry_path | q }}
tail -n {{ start }}{% if follow %} -f --pid=$${% endif %} {{ log_path | q }}\
{% if prefix is not none %} | sed -u "s/^/"{{ prefix | q }}"/"{% endif %}
"""

CLEANUP_TEMPLATE = """\
if [ -f {{ registry_path | q }} ]; then
  while read -r pid; do
    kill "$pid" 2>/dev/null || true
  done < {{ registry_path | q }}
  rm -f {{ registry_path | q }}
fi
exit 0
"""

_env = Environment(undefined=StrictUndefined, keep_trailing_newline=True)
_env.filters["q"] = lambda value: shlex.quote(str(value))

_tail_template = _env.from_string(TAIL_TEMPLATE)
_cleanup_template = _env.from_string(CLEANUP_TEMPLATE)

def line_prefix(service: str, width: int) -> str:
    """
    Fixed-width service column, padded or truncated, like the orchestrator's own log prefix.

    :param service: Service name.
    :param width: Column width before the separator.
    :return: The prefix placed before every line.
    """
    return f"{service[:width]:<{width}}| "

def render_tail_script(log_path: str,
                       registry_path: str,
                       follow: bool,
                       tail_lines,
                       prefix: Optional[str] = None) -> str:
    """
    Renders the check-exists, register-pid, tail pipeline for one log file.

    When following, ``tail --pid=$$`` exits on its own once the registered
    shell is killed, which is how cleanup ends an otherwise unbounded follow.

    :param log_path: Absolute path of the log file inside the container.
    :param registry_path: Path of the PID registry inside the container.
    :param follow: Keep streaming new lines.
    :param tail_lines: Positive line count, or ``"all"`` to start from the first line.
    :param prefix: Text put before every line, or None for no prefix.
    :return: The script for ``bash -c``.
    """
    start = "+1" if tail_lines == "all" else str(int(tail_lines))
    if prefix is not None:
        # sed replacement: escape the characters it treats specially
        prefix = prefix.replace("\\", "\\\\").replace("/", "\\/").replace("&", "\\&")
    return _tail_template.render(
        log_path=log_path,
        registry_path=registry_path,
        follow=follow,
        start=start,
        prefix=prefix,
    )

def render_cleanup_script(registry_path: str) -> str:
    """
    Renders the sweep that kills every registered pid and removes the registry.
    A missing registry means no tail was started and is not an error.
    """
    return _cleanup_template.render(registry_path=registry_path)
