import os
import re
import sys

import pt.apptools
import pt.diskcache
import pt.namer
import pt.params
import pt.preprocessor
import pt.reporter
import pt.utils
import pt.wrappedos


class ExtractionError(IOError):
    """ The file to scan for #include statements could not be read """


def create(args, reporter=None, preprocessor=None):
    """HeaderDeps Factory.  --use-test-preprocessor decides the methodology
    for the whole run.
    """
    if reporter is None:
        reporter = pt.reporter.Reporter(args)
    classname = ("Cpp" if args.use_test_preprocessor else "Shallow") + "HeaderDeps"
    if args.verbose >= 4:
        print("Creating " + classname + " to process header dependencies.")
    if classname == "CppHeaderDeps":
        if preprocessor is None:
            preprocessor = pt.preprocessor.PreProcessor(args)
        return CppHeaderDeps(args, reporter, preprocessor)
    return ShallowHeaderDeps(args, reporter)


def add_arguments(cap):
    """Add the command line arguments that the HeaderDeps classes require"""
    pt.apptools.add_common_arguments(cap)


class HeaderDepsBase(object):
    """Implement the common functionality of the different header
    searching classes.
    """

    # Used in the progress message.  Derived classes override.
    operation = None

    def __init__(self, args, reporter):
        self.args = args
        self.reporter = reporter

    def process(self, params):
        """Return the ordered list of headers that params.filepath includes"""
        raise NotImplementedError


class ShallowHeaderDeps(HeaderDepsBase):
    """Scan the text of the file for #include statements.
    Header names are returned exactly as written.  There is no search of
    the include paths, no recursion into the headers and no knowledge of
    macros, so conditional includes are always reported.
    """

    operation = "Parsing #include statements within"

    def __init__(self, args, reporter):
        HeaderDepsBase.__init__(self, args, reporter)

        # The pattern is intended to match all include statements but
        # not the ones with either C or C++ commented out.
        self.pattern = re.compile(
            r'/\*.*?\*/|//.*?$|^[\s]*#[\s]*include[\s]*["<][\s]*([^\s">]*)[\s]*[">]',
            re.MULTILINE | re.DOTALL,
        )

    def process(self, params):
        try:
            with open(params.filepath, encoding="utf-8", errors="ignore") as ff:
                text = ff.read()
        except OSError as err:
            raise ExtractionError(
                err.errno, "Could not scan for #include statements", params.filepath
            ) from err

        return pt.utils.ordered_unique(
            group for group in self.pattern.findall(text) if group
        )


def parse_dependencies(output, realpath, system_paths=()):
    """The output of -MM will be something like
    test_adder.o: /proj/test/test_adder.c unity.h \\
      /proj/src/adder.h mock_types.h
    We need to throw away the object file, the source file and
    anything that lives in a system include directory.
    """
    text = output.replace("\\\n", " ")
    deplist = ""
    for line in text.splitlines():
        target, sep, rest = line.partition(":")
        if sep and target.strip().endswith(".o"):
            deplist = rest
            break

    return pt.utils.ordered_unique(
        dep
        for dep in deplist.split()
        if dep.strip("\\\t\n\r")
        and dep not in (realpath, "/dev/null")
        and not dep.startswith(system_paths)
    )


class CppHeaderDeps(HeaderDepsBase):
    """Using the C Pre Processor, create the list of headers that the
    given file depends upon.  The test's own flags, include paths and defines
    are used so conditional includes resolve exactly as they will in the build,
    and headers included by headers are found too.
    """

    operation = "Extracting #include statements via preprocessor from"

    def __init__(self, args, reporter, preprocessor):
        HeaderDepsBase.__init__(self, args, reporter)
        self.preprocessor = preprocessor

    def _system_paths(self, params):
        """By default, exclude system paths"""
        regex = r"-isystem\s*([^\s]+)"
        flags = " ".join(params.flags)
        paths = re.findall(regex, flags)
        return tuple(item for pth in paths for item in (pth, pt.wrappedos.realpath(pth)))

    def process(self, params):
        shell_result = self.preprocessor.dependencies(params.filepath, params)
        if not shell_result.success:
            raise pt.preprocessor.PreprocessorError(params.filepath, shell_result)

        return parse_dependencies(
            shell_result.output, params.filepath, self._system_paths(params)
        )


class IncludesHandler(object):
    """Answer "what does this file include?" for a test, consulting the
    #include statement listing file before doing any work and rewriting it
    after every extraction.
    """

    def __init__(self, args, headerdeps, cache, reporter):
        self.args = args
        self.headerdeps = headerdeps
        self.cache = cache
        self.reporter = reporter

    def extract_includes(self, params):
        basename = os.path.basename(params.filepath)
        if self.cache.newer(params.filepath, params.test):
            includes = self.cache.load(params.filepath, params.test)
            if includes is not None:
                self.reporter.log(
                    pt.reporter.generate_module_progress(
                        operation="Loading #include statement listing file for",
                        module_name=params.test,
                        filename=basename,
                    )
                )
                return includes

        self.reporter.log(
            pt.reporter.generate_module_progress(
                operation=self.headerdeps.operation,
                module_name=params.test,
                filename=basename,
            )
        )
        includes = self.headerdeps.process(params)
        self.cache.write(params.filepath, params.test, includes)
        return includes


def create_includes_handler(args, reporter=None, preprocessor=None, namer=None):
    if reporter is None:
        reporter = pt.reporter.Reporter(args)
    if namer is None:
        namer = pt.namer.Namer(args)
    headerdeps = create(args, reporter=reporter, preprocessor=preprocessor)
    cache = pt.diskcache.DiskCache(args, namer)
    return IncludesHandler(args, headerdeps, cache, reporter)


def main(argv=None):
    cap = pt.apptools.create_parser("List the #include statements of test files", argv=argv)
    add_arguments(cap)
    cap.add("filename", help="File/s to list the #include statements of", nargs="+")
    cap.add("--test", help="Test identity.  Defaults to the basename of each file.")
    args = pt.apptools.parseargs(cap, argv)

    if not pt.wrappedos.isfile(args.filename[0]):
        sys.stderr.write(
            "The supplied filename ({0}) isn't a file. "
            " Did you spell it correctly?  "
            "Another possible reason is that you didn't supply a filename and "
            "that configargparse has picked an unused positional argument from "
            "the config file.\n".format(args.filename[0])
        )
        return 1

    handler = create_includes_handler(args)
    for fname in args.filename:
        params = pt.params.create(args, fname, test=args.test)
        try:
            includes = handler.extract_includes(params)
        except (ExtractionError, pt.preprocessor.PreprocessorError) as err:
            sys.stderr.write(str(err) + "\n")
            return 1
        for include in includes:
            print(include)

    return 0
