import os
import sys
import errno
import collections

import pt.apptools
import pt.directives
import pt.headerdeps
import pt.jobs
import pt.namer
import pt.params
import pt.plugins
import pt.preprocessor
import pt.reporter
import pt.utils
import pt.wrappedos
from pt.plugins import Hook

# Everything the Preprocessinator talks to.  Built once by create()
# and handed to the constructor so tests can swap in fakes.
Collaborators = collections.namedtuple(
    "Collaborators",
    [
        "directives",
        "includes_handler",
        "preprocessor",
        "namer",
        "plugin_manager",
        "reporter",
    ],
)

# The parts of a preprocessing call that differ between mock headers
# and test files.  A hook of None means that no hook fires.
Stage = collections.namedtuple("Stage", ["kind", "pre_hook", "post_hook", "pathname", "run"])

# How much of a unit of work pt-preprocess does
STEPS = ("all", "mocks", "tests")


def create_collaborators(args, reporter=None):
    if reporter is None:
        reporter = pt.reporter.Reporter(args)
    namer = pt.namer.Namer(args)
    preprocessor = pt.preprocessor.PreProcessor(args)
    return Collaborators(
        directives=pt.directives.DirectiveExtractor(args, reporter),
        includes_handler=pt.headerdeps.create_includes_handler(
            args, reporter=reporter, preprocessor=preprocessor, namer=namer
        ),
        preprocessor=preprocessor,
        namer=namer,
        plugin_manager=pt.plugins.create(args, reporter=reporter),
        reporter=reporter,
    )


def create(args):
    """Preprocessinator Factory"""
    return Preprocessinator(args, create_collaborators(args))


def add_arguments(cap):
    pt.apptools.add_common_arguments(cap)
    pt.plugins.add_arguments(cap)
    pt.jobs.add_arguments(cap)
    cap.add(
        "--mock-prefix",
        default="mock_",
        help="An #include of <mock-prefix>foo.h means that foo.h is to be mocked",
    )
    cap.add(
        "--mock-dir",
        default="",
        help="Directory the mock generator writes <mock-prefix>foo.h to. "
        "It goes first on the include path of every test file. "
        "Defaults to PTBUILD/mocks",
    )
    cap.add(
        "--step",
        choices=STEPS,
        default="all",
        help="mocks: only preprocess the headers to be mocked. "
        "tests: only preprocess the test files, the mocks must already exist. "
        "all: both, which needs a post_mock_preprocess plugin that generates the mocks.",
    )


class Preprocessinator(object):

    """ Take test files and the headers they mock through the preprocessor.
        Every method works on one (file, test) pair and only ever writes
        the files that the Namer derives from that pair, so different
        pairs can be processed in parallel.
    """

    def __init__(self, args, collaborators):
        self.args = args
        self.directives = collaborators.directives
        self.includes_handler = collaborators.includes_handler
        self.preprocessor = collaborators.preprocessor
        self.namer = collaborators.namer
        self.plugin_manager = collaborators.plugin_manager
        self.reporter = collaborators.reporter

        self._mock_stage = Stage(
            kind="mock",
            pre_hook=Hook.PRE_MOCK_PREPROCESS,
            post_hook=Hook.POST_MOCK_PREPROCESS,
            pathname=self.namer.preprocessed_header_pathname,
            run=self.preprocessor.preprocess,
        )
        self._test_stage = Stage(
            kind="test",
            pre_hook=Hook.PRE_TEST_PREPROCESS,
            post_hook=Hook.POST_TEST_PREPROCESS,
            pathname=self.namer.preprocessed_test_pathname,
            run=self.preprocessor.preprocess,
        )
        self._directives_stage = Stage(
            kind="directives",
            pre_hook=None,
            post_hook=None,
            pathname=self.namer.directives_file_pathname,
            run=self.preprocessor.preprocess_directives,
        )

    def extract_test_build_directives(self, filepath):
        """ The build directives of a file.  Needs no test identity or flags. """
        return self.directives.extract(filepath)

    def extract_testing_context(self, params):
        """ The #include list of a test file """
        includes = self.includes_handler.extract_includes(params)
        if self.args.use_test_preprocessor:
            self.reporter.log(
                pt.reporter.generate_progress(
                    "Processing #include statements for " + os.path.basename(params.filepath)
                ),
                pt.reporter.Verbosity.NORMAL,
            )
        return includes

    def preprocess_mockable_header_file(self, params):
        """ Returns the path to the preprocessed version of the header """
        return self._preprocess(self._mock_stage, params)

    def preprocess_test_file(self, params):
        """ Returns the path to the preprocessed version of the test file """
        return self._preprocess(self._test_stage, params)

    def preprocess_file_directives(self, params):
        """ Expand the #directives of the file but leave its macros
            (and so any test annotations) alone
        """
        return self._preprocess(self._directives_stage, params)

    def _dispatch(self, hook, context):
        if hook is not None:
            self.plugin_manager.dispatch(hook, context)

    def _preprocess(self, stage, params):
        preprocessed_filepath = stage.pathname(params.filepath, params.test)
        context = pt.plugins.HookContext(stage.kind, params, preprocessed_filepath)
        if stage.kind == "mock":
            context.mock_file = self.namer.mock_pathname(params.filepath)

        self._dispatch(stage.pre_hook, context)

        # The pre hook handlers may have adjusted the compile parameters
        params = params._replace(
            flags=tuple(context.flags),
            include_paths=tuple(context.include_paths),
            defines=tuple(context.defines),
        )

        self.reporter.log(
            pt.reporter.generate_module_progress(
                operation="Preprocessing",
                module_name=params.test,
                filename=os.path.basename(params.filepath),
            )
        )

        try:
            context.includes = self.includes_handler.extract_includes(params)
            if self.args.verbose >= pt.reporter.Verbosity.OBNOXIOUS:
                self.reporter.log(
                    "{0} includes {1}".format(
                        os.path.basename(params.filepath), ", ".join(context.includes)
                    ),
                    pt.reporter.Verbosity.OBNOXIOUS,
                )
            context.shell_result = stage.run(params.filepath, preprocessed_filepath, params)
        finally:
            self._dispatch(stage.post_hook, context)

        if not context.shell_result.success:
            raise pt.preprocessor.PreprocessorError(params.filepath, context.shell_result)
        if context.failed:
            raise pt.plugins.HookError(params.filepath, context.errors)

        return preprocessed_filepath

    def find_mocked_header(self, params, include):
        """ mock_adder.h -> realpath of adder.h, searching the directory of
            the test file and then the include paths
        """
        header = os.path.basename(include)[len(self.args.mock_prefix):]
        search_dirs = [pt.wrappedos.dirname(params.filepath)] + list(params.include_paths)
        realpath = pt.utils.find_header(header, search_dirs)
        if realpath is None:
            raise pt.headerdeps.ExtractionError(
                errno.ENOENT,
                "Could not find the header to mock for " + include,
                os.path.join(search_dirs[0], header),
            )
        return realpath

    def create_test_params(self, filename, test=None):
        """ The CompileParams of a test file: the configuration, the build
            directives of the file and the mock directory, which is searched
            before any other include path.
        """
        realpath = pt.wrappedos.realpath(filename)
        directives = self.extract_test_build_directives(realpath)
        params = pt.params.create(self.args, realpath, test=test, directives=directives)
        include_paths = pt.utils.ordered_unique((self.namer.mock_dir(),) + params.include_paths)
        return params._replace(include_paths=tuple(include_paths))

    def preprocess_mocks(self, params):
        """ Preprocess every header the test file mocks.
            Returns the paths of the preprocessed headers.
        """
        preprocessed = []
        for include in self.extract_testing_context(params):
            if os.path.basename(include).startswith(self.args.mock_prefix):
                header = self.find_mocked_header(params, include)
                preprocessed.append(
                    self.preprocess_mockable_header_file(params._replace(filepath=header))
                )
        return preprocessed

    def process_test(self, filename, test=None, step="all"):
        """ One unit of work.  The mocks step preprocesses the headers that a
            test file mocks.  The tests step preprocesses the test file, which
            only works once the mocks have been generated into the mock
            directory.  Returns the paths of everything preprocessed.
        """
        params = self.create_test_params(filename, test=test)
        preprocessed = []
        if step in ("all", "mocks"):
            preprocessed.extend(self.preprocess_mocks(params))
        if step in ("all", "tests"):
            preprocessed.append(self.preprocess_test_file(params))
        return preprocessed


def main(argv=None):
    cap = pt.apptools.create_parser(
        "Preprocess test files and the headers they mock", argv=argv
    )
    add_arguments(cap)
    cap.add("filename", help="Test file(s) to preprocess", nargs="+")
    args = pt.apptools.parseargs(cap, argv)

    preprocessinator = create(args)
    failures = 0

    def unit(fname):
        return preprocessinator.process_test(fname, step=args.step)

    for fname, future in pt.jobs.run(unit, args.filename, args.parallel):
        try:
            preprocessed = future.result()
        except (
            IOError,
            pt.preprocessor.PreprocessorError,
            pt.plugins.HookError,
        ) as err:
            failures += 1
            preprocessinator.reporter.error("{0}: {1}".format(fname, err))
            continue
        if args.verbose >= 1:
            for pathname in preprocessed:
                print(pathname)

    if failures:
        sys.stderr.write(
            "{0} of {1} test file(s) failed to preprocess\n".format(failures, len(args.filename))
        )
        return 1
    return 0
