"""
Stand-in for FFmpeg used by the test suite.

Understands the subset of FFmpeg's command line that the request builder emits:
"-i <input>", "-metadata key=value", value-taking options such as "-c copy",
"-ss" and "-to", flags such as "-hide_banner", and the output path as the last
argument. The output is the input bytes followed by a tag section:

    <input bytes>\n--tags--\nkey=value\n...

Behaviour is tuned through environment variables:
    FAKE_ENGINE_EXIT           exit code (default 0)
    FAKE_ENGINE_NO_OUTPUT      if set, no output file is written
    FAKE_ENGINE_SLEEP          seconds to sleep before finishing
    FAKE_ENGINE_STDOUT_LINES   number of numbered lines to print on stdout
"""

import os
import sys
import time

TAGS_MARKER = b"\n--tags--\n"
VALUE_OPTIONS = {"-i", "-c", "-ss", "-to", "-metadata", "-f"}


def parse_args(argv):
    input_path = None
    metadata = []
    options = {}
    i = 0
    positional = []
    while i < len(argv):
        token = argv[i]
        if token in VALUE_OPTIONS and i + 1 < len(argv):
            value = argv[i + 1]
            if token == "-i":
                input_path = value
            elif token == "-metadata":
                metadata.append(value)
            else:
                options[token] = value
            i += 2
            continue
        if token.startswith("-"):
            i += 1
            continue
        positional.append(token)
        i += 1
    output_path = positional[-1] if positional else None
    return input_path, metadata, options, output_path


def main(argv):
    input_path, metadata, options, output_path = parse_args(argv)
    print("fake engine started", file=sys.stderr, flush=True)

    for n in range(int(os.environ.get("FAKE_ENGINE_STDOUT_LINES", "0"))):
        print(f"line {n}", flush=True)

    sleep_seconds = float(os.environ.get("FAKE_ENGINE_SLEEP", "0"))
    if sleep_seconds:
        time.sleep(sleep_seconds)

    if options:
        print(f"options {sorted(options.items())}", file=sys.stderr, flush=True)
    sys.stderr.write("size=1kB time=00:00:01.00\rsize=2kB time=00:00:02.00\n")
    sys.stderr.flush()

    if input_path is None or output_path is None:
        print("missing input or output", file=sys.stderr, flush=True)
        return 1

    with open(input_path, "rb") as f:
        data = f.read()

    if not os.environ.get("FAKE_ENGINE_NO_OUTPUT"):
        tags = "".join(f"{m}\n" for m in metadata).encode("utf-8")
        with open(output_path, "wb") as f:
            f.write(data + TAGS_MARKER + tags)

    return int(os.environ.get("FAKE_ENGINE_EXIT", "0"))


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
