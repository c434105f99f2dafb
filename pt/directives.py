import os
import re
import sys
import collections

import pt.apptools
import pt.reporter
import pt.wrappedos

FLAG = "FLAG"
DEFINE = "DEFINE"
INCLUDE_PATH = "INCLUDE_PATH"
SOURCE_FILE = "SOURCE_FILE"

DirectiveEntry = collections.namedtuple("DirectiveEntry", ["kind", "value", "lineno"])

# The magic comment keys and the kind of directive each one produces
MAGIC_KINDS = {
    "FLAGS": FLAG,
    "CPPFLAGS": FLAG,
    "DEFINE": DEFINE,
    "DEFINES": DEFINE,
    "INCLUDE": INCLUDE_PATH,
    "SOURCE": SOURCE_FILE,
}

# The macro annotations and the kind of directive each one produces
MACRO_KINDS = {
    "TEST_INCLUDE_PATH": INCLUDE_PATH,
    "TEST_SOURCE_FILE": SOURCE_FILE,
}


class BuildDirectiveSet(tuple):
    """ The directives of one file, in the order they appear """

    def values(self, kind):
        return [entry.value for entry in self if entry.kind == kind]

    @property
    def flags(self):
        return [flag for value in self.values(FLAG) for flag in value.split()]

    @property
    def defines(self):
        return [define for value in self.values(DEFINE) for define in value.split()]

    @property
    def include_paths(self):
        return self.values(INCLUDE_PATH)

    @property
    def source_files(self):
        return self.values(SOURCE_FILE)


def strip_block_comments(line, in_block_comment):
    """ Remove the /* */ comments from a line.  in_block_comment says
        whether the line starts inside one.  Returns the remaining text and
        whether a block comment is still open at the end of the line.
        A // comment runs to the end of the line, so a /* after it opens
        nothing, and the // comment itself is kept since magic comments
        live there.
    """
    live = []
    pos = 0
    while pos < len(line):
        if in_block_comment:
            end = line.find("*/", pos)
            if end == -1:
                break
            pos = end + 2
            in_block_comment = False
            continue
        start = line.find("/*", pos)
        line_comment = line.find("//", pos)
        if start == -1 or (line_comment != -1 and line_comment < start):
            live.append(line[pos:])
            break
        live.append(line[pos:start])
        pos = start + 2
        in_block_comment = True
    return "".join(live), in_block_comment


class DirectiveExtractor:
    """ Find the build directives embedded in a test file.
        There are two spellings.  Magic comments
            //#FLAGS=-Wall -Wextra
            //#DEFINE=UNITY_INCLUDE_DOUBLE
            //#INCLUDE=support/include
            //#SOURCE=adder_helpers.c
        and macro annotations
            TEST_INCLUDE_PATH("support/include")
            TEST_SOURCE_FILE("adder_helpers.c")

        Each directive must be on its own line.  Lines that look like a
        directive but can't be understood (unknown key, empty value,
        unbalanced quotes) are skipped.  Nothing is ever executed.
    """

    def __init__(self, args, reporter=None):
        self.args = args
        if reporter is None:
            reporter = pt.reporter.Reporter(args)
        self.reporter = reporter

        # The magic pattern is //#key=value with whitespace ignored
        self.magicpattern = re.compile(r"^\s*//#(\S*?)\s*=\s*(.*?)\s*$")
        self.macroprefix = re.compile(r"^\s*(" + "|".join(MACRO_KINDS) + r")\b")
        self.macropattern = re.compile(
            r'^\s*(' + "|".join(MACRO_KINDS) + r')\s*\(\s*"([^"]*)"\s*\)\s*;?\s*(//.*)?$'
        )

    def __call__(self, filename):
        return self.extract(filename)

    def _match_line(self, line):
        """ Return (kind, value) or None if the line holds no usable directive """
        match = self.magicpattern.match(line)
        if match:
            key, value = match.groups()
            kind = MAGIC_KINDS.get(key)
            if kind is None or not value:
                if self.args.verbose >= 5:
                    print("Skipping unrecognised magic comment: " + line.strip())
                return None
            return kind, value

        if self.macroprefix.match(line):
            match = self.macropattern.match(line)
            if not match or not match.group(2).strip():
                if self.args.verbose >= 5:
                    print("Skipping malformed build directive: " + line.strip())
                return None
            return MACRO_KINDS[match.group(1)], match.group(2).strip()

        return None

    def extract(self, filename):
        """ Return the BuildDirectiveSet for filename """
        self.reporter.log(
            pt.reporter.generate_progress("Parsing " + os.path.basename(filename))
        )

        entries = []
        in_block_comment = False
        with open(filename, encoding="utf-8", errors="ignore") as ff:
            for lineno, line in enumerate(ff, start=1):
                live, in_block_comment = strip_block_comments(line, in_block_comment)
                matched = self._match_line(live)
                if matched is None:
                    continue
                kind, value = matched
                entries.append(DirectiveEntry(kind, value, lineno))
                if self.args.verbose >= 5:
                    print(
                        "Using build directive {0}={1} extracted from {2}:{3}".format(
                            kind, value, filename, lineno
                        )
                    )

        return BuildDirectiveSet(entries)


class NullStyle:
    def __call__(self, realpath, directives):
        print("{}: {}".format(realpath, [(entry.kind, entry.value) for entry in directives]))


class PrettyStyle:
    def __call__(self, realpath, directives):
        sys.stdout.write("\n{}".format(realpath))
        if not directives:
            sys.stdout.write("\n\tNone")
        for entry in directives:
            sys.stdout.write("\n\t{}:{}: {}".format(entry.lineno, entry.kind, entry.value))


def add_arguments(cap):
    pt.apptools.add_common_arguments(cap)


def main(argv=None):
    cap = pt.apptools.create_parser(
        "Show the build directives embedded in test files", argv=argv
    )
    add_arguments(cap)
    cap.add("filename", help="File/s to extract build directives from", nargs="+")

    # Figure out what style classes are available and add them to the command
    # line options
    styles = [st[:-5].lower() for st in dict(globals()) if st.endswith("Style")]
    cap.add("--style", choices=styles, default="pretty", help="Output formatting style")

    args = pt.apptools.parseargs(cap, argv)
    extractor = DirectiveExtractor(args)

    styleclass = globals()[args.style.title() + "Style"]
    styleobject = styleclass()

    for fname in args.filename:
        realpath = pt.wrappedos.realpath(fname)
        styleobject(realpath, extractor.extract(realpath))

    print()
    return 0
