""" Hooks let plugins watch (and adjust) the preprocessing of each file.

    A plugin is a module with a register function
        def register(plugin_manager):
            plugin_manager.register(pt.plugins.Hook.POST_MOCK_PREPROCESS, my_handler)

    A handler is called with the HookContext of the preprocessing call
    that fired the hook.  It may signal failure by raising or by
    returning False.
"""
import enum
import importlib

import pt.reporter


class Hook(enum.Enum):
    PRE_MOCK_PREPROCESS = "pre_mock_preprocess"
    POST_MOCK_PREPROCESS = "post_mock_preprocess"
    PRE_TEST_PREPROCESS = "pre_test_preprocess"
    POST_TEST_PREPROCESS = "post_test_preprocess"


class HookFailure(object):
    def __init__(self, hook, handler, error):
        self.hook = hook
        self.handler = handler
        self.error = error

    def __str__(self):
        name = getattr(self.handler, "__qualname__", repr(self.handler))
        return "{0} handler {1} failed: {2}".format(self.hook.value, name, self.error)


class HookError(RuntimeError):
    """ One or more hook handlers failed during a preprocessing call """

    def __init__(self, filename, failures):
        self.filename = filename
        self.failures = list(failures)
        RuntimeError.__init__(
            self,
            "\n".join(
                ["Plugin hooks failed while preprocessing " + filename]
                + ["  " + str(failure) for failure in self.failures]
            ),
        )


class HookContext(object):
    """ The bundle of named fields handed to every handler of a hook.
        The same object flows through the pre hook, the preprocessing
        and the post hook, so handlers see each other's changes.

        flags, include_paths and defines may be replaced by a pre hook
        handler and the replacement is what gets used.
        source_file, preprocessed_file and test are informational.
        shell_result is None until the preprocessor has run.
        mock_file is where a mock generator should write the mock of a
        header (None for anything that is not a mocked header).
    """

    # kind -> (name for source_file, name for preprocessed_file)
    _aliases = {
        "mock": ("header_file", "preprocessed_header_file"),
        "test": ("test_file", "preprocessed_test_file"),
    }

    def __init__(self, kind, params, preprocessed_file):
        self.kind = kind
        self.hook = None
        self.source_file = params.filepath
        self.preprocessed_file = preprocessed_file
        self.test = params.test
        self.flags = list(params.flags)
        self.include_paths = list(params.include_paths)
        self.defines = list(params.defines)
        self.includes = None
        self.shell_result = None
        self.errors = []
        self.mock_file = None

    def __getattr__(self, name):
        # Only called for names that aren't real attributes
        aliases = HookContext._aliases.get(self.__dict__.get("kind"), ())
        if name in aliases:
            return (self.source_file, self.preprocessed_file)[aliases.index(name)]
        raise AttributeError(name)

    @property
    def failed(self):
        return bool(self.errors)


def add_arguments(cap):
    cap.add(
        "--plugins",
        action="append",
        default=[],
        help="Python module to import.  It must have a register(plugin_manager) function. "
        "Repeat the option for more than one plugin.",
    )


class PluginManager(object):
    """ For each Hook, the ordered list of handlers to call """

    def __init__(self, args, reporter=None):
        self.args = args
        if reporter is None:
            reporter = pt.reporter.Reporter(args)
        self.reporter = reporter
        self._handlers = {hook: [] for hook in Hook}

    def register(self, hook, handler):
        self._handlers[Hook(hook)].append(handler)

    def handlers(self, hook):
        return list(self._handlers[Hook(hook)])

    def load(self, modulenames):
        """ Import each plugin module and let it register its handlers """
        for modulename in modulenames:
            module = importlib.import_module(modulename)
            if self.args.verbose >= 3:
                print("Loading plugin " + modulename)
            module.register(self)

    def dispatch(self, hook, context):
        """ Call every handler for hook, in registration order.
            A failing handler doesn't stop the handlers after it.
            Returns the failures, which are also appended to context.errors.
        """
        hook = Hook(hook)
        context.hook = hook
        failures = []
        for handler in self._handlers[hook]:
            try:
                ok = handler(context)
            except Exception as err:
                failures.append(HookFailure(hook, handler, err))
                continue
            if ok is False:
                failures.append(HookFailure(hook, handler, "handler returned False"))

        for failure in failures:
            self.reporter.error(str(failure))
        context.errors.extend(failures)
        return failures


def create(args, reporter=None):
    plugin_manager = PluginManager(args, reporter=reporter)
    plugin_manager.load(getattr(args, "plugins", None) or [])
    return plugin_manager
