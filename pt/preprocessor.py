import subprocess
import collections

import pt.utils
import pt.wrappedos


class ShellResult(collections.namedtuple("ShellResult", ["command", "output", "exit_status"])):
    """ What the preprocessor said and how it exited """

    __slots__ = ()

    @property
    def success(self):
        return self.exit_status == 0


class PreprocessorError(RuntimeError):
    """ The preprocessor ran but failed, or could not be run at all """

    def __init__(self, filename, shell_result):
        self.filename = filename
        self.shell_result = shell_result
        RuntimeError.__init__(
            self,
            "Preprocessing {0} failed with exit status {1}\n> {2}\n{3}".format(
                filename,
                shell_result.exit_status,
                " ".join(shell_result.command),
                shell_result.output,
            ),
        )


class PreProcessor(object):

    """ Make it easy to call the C Pre Processor.
        Calls block until the preprocessor exits.  No locks are held.
    """

    def __init__(self, args):
        self.args = args

    def command(self, realpath, params, extraargs=()):
        cmd = self.args.CPP.split() + list(params.flags)
        cmd.extend("-I" + path for path in params.include_paths)
        cmd.extend("-D" + define for define in params.defines)
        cmd.extend(extraargs)
        if pt.utils.isheader(realpath):
            # Use /dev/null as the dummy source file.
            cmd.extend(["-include", realpath, "-x", "c", "/dev/null"])
        else:
            cmd.append(realpath)
        return cmd

    def run(self, realpath, params, extraargs=()):
        """ Run the preprocessor and capture everything it says """
        cmd = self.command(realpath, params, extraargs)
        if self.args.verbose >= 3:
            print(" ".join(cmd))

        try:
            completed = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                universal_newlines=True,
            )
        except OSError as err:
            # Most likely the preprocessor isn't installed
            return ShellResult(cmd, "Failed to preprocess {0}  Error={1}".format(realpath, err), 127)

        if self.args.verbose >= 5:
            print(completed.stdout)
        return ShellResult(cmd, completed.stdout, completed.returncode)

    def dependencies(self, realpath, params):
        """ Ask the preprocessor for the make rule of realpath.
            Missing headers are assumed to be generated (e.g., mocks).
        """
        return self.run(realpath, params, extraargs=["-MM", "-MG"])

    def preprocess(self, realpath, target, params):
        """ Fully preprocess realpath into target """
        pt.wrappedos.makedirs(pt.wrappedos.dirname(target))
        return self.run(realpath, params, extraargs=["-E", "-o", target])

    def preprocess_directives(self, realpath, target, params):
        """ Only handle the #directives, leaving macros unexpanded """
        pt.wrappedos.makedirs(pt.wrappedos.dirname(target))
        return self.run(realpath, params, extraargs=["-E", "-fdirectives-only", "-o", target])
