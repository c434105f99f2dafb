import os
import shutil
import tempfile
import contextlib

import configargparse

import pt.apptools
import pt.preprocessinator
import pt.preprocessor
import pt.reporter
import pt.utils
import pt.wrappedos

# The abbreviation "uth" is often used for this "unittesthelper"


def reset():
    delete_existing_parsers()
    pt.apptools.resetcallbacks()
    pt.wrappedos.clear_cache()
    pt.utils.clear_cache()


def delete_existing_parsers():
    """ The singleton parsers supplied by configargparse
        don't play well with the unittest framework.
        This function will delete them so you are
        starting with a clean slate
    """
    configargparse._parsers = {}


def ptdir():
    return os.path.dirname(os.path.realpath(__file__))


def samplesdir():
    return os.path.realpath(os.path.join(ptdir(), "samples"))


def create_args(builddir, extraargs=None):
    """ Parse the arguments of pt-preprocess in the same way the
        command line tool does, but with a clean parser each time
    """
    delete_existing_parsers()
    pt.apptools.resetcallbacks()
    cap = configargparse.getArgumentParser(
        description="Configargparser in test code",
        formatter_class=configargparse.ArgumentDefaultsHelpFormatter,
        args_for_setting_config_path=["-c", "--config"],
        ignore_unknown_config_file_keys=True,
    )
    pt.preprocessinator.add_arguments(cap)
    argv = ["--PTBUILD", builddir] + list(extraargs or [])
    return pt.apptools.parseargs(cap, argv)


def write_file(path, text, mtime=None):
    """ Write text to path (creating directories) and optionally
        force its modification time
    """
    pt.wrappedos.makedirs(os.path.dirname(path))
    with open(path, "w") as ff:
        ff.write(text)
    if mtime is not None:
        set_mtime(path, mtime)
    return path


def set_mtime(path, mtime):
    os.utime(path, (mtime, mtime))


def copy_samples(relativedir, destdir):
    """ Copy a sample directory so the test can modify it """
    target = os.path.join(destdir, os.path.basename(relativedir))
    shutil.copytree(os.path.join(samplesdir(), relativedir), target)
    return target


class TempDirContext:
    def __enter__(self):
        self._origdir = os.getcwd()
        self._tmpdir = tempfile.mkdtemp()
        os.chdir(self._tmpdir)
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        os.chdir(self._origdir)
        shutil.rmtree(self._tmpdir, ignore_errors=True)


@contextlib.contextmanager
def EnvironmentContext(env_vars):
    """ Temporarily set (or with None, unset) environment variables """
    original = {key: os.environ.get(key) for key in env_vars}
    try:
        for key, value in env_vars.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value
        yield
    finally:
        for key, value in original.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value


class RecordingReporter:
    """ A Reporter that remembers rather than prints """

    def __init__(self, events=None):
        self.messages = []
        self.logged = []
        self.errors = []
        self.events = events if events is not None else []

    def log(self, message, level=pt.reporter.Verbosity.NORMAL):
        self.messages.append(message)
        self.logged.append((message, level))

    def error(self, message):
        self.errors.append(message)
        self.events.append("error")


class FakePreProcessor:
    """ Stands in for pt.preprocessor.PreProcessor.
        dependencies maps a realpath to the -MM output to report for it.
        Files in failures make every call for them fail.
        Every call is appended to events so tests can check ordering.
    """

    def __init__(self, dependencies=None, failures=(), events=None):
        self.dependencies_output = dependencies or {}
        self.failures = set(failures)
        self.calls = []
        self.events = events if events is not None else []

    def _result(self, command, realpath, output):
        if realpath in self.failures:
            return pt.preprocessor.ShellResult(command, "fake error: " + realpath, 1)
        return pt.preprocessor.ShellResult(command, output, 0)

    def dependencies(self, realpath, params):
        self.calls.append(("dependencies", realpath, params))
        self.events.append("dependencies")
        return self._result(
            ["fakecpp", "-MM", realpath], realpath, self.dependencies_output.get(realpath, "")
        )

    def _write(self, kind, realpath, target, params):
        self.calls.append((kind, realpath, params))
        self.events.append(kind)
        result = self._result(["fakecpp", "-E", realpath, "-o", target], realpath, "")
        if result.success:
            write_file(
                target,
                "// {0} of {1} for {2}\n// defines: {3}\n".format(
                    kind, realpath, params.test, " ".join(params.defines)
                ),
            )
        return result

    def preprocess(self, realpath, target, params):
        return self._write("preprocess", realpath, target, params)

    def preprocess_directives(self, realpath, target, params):
        return self._write("preprocess_directives", realpath, target, params)
