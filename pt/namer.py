import os
import hashlib
import functools
import pt.wrappedos


class Namer(object):

    """ From a source filename and a test identity, calculate the names
        of the files derived from it.  Plugins rely on these names being
        stable, so they depend on nothing but (filename, test) and the
        build root.
        <PTBUILD>/preprocess/headers/<test>/<dirtag>/<basename>
        <PTBUILD>/preprocess/tests/<test>/<dirtag>/<basename>
        <PTBUILD>/preprocess/directives/<test>/<dirtag>/<basename>
        <PTBUILD>/preprocess/includes/<test>/<dirtag>/<basename>.yml

        dirtag is a short digest of the directory holding the file so that
        a/config.h and b/config.h never share a path.
    """

    def __init__(self, args):
        self.args = args

    @functools.lru_cache(maxsize=None)
    def preprocess_dir(self):
        return pt.wrappedos.realpath(os.path.join(self.args.PTBUILD, "preprocess"))

    @functools.lru_cache(maxsize=None)
    def mock_dir(self):
        """ Where the generated mock_*.h headers are expected to be """
        mock_dir = getattr(self.args, "mock_dir", None) or os.path.join(
            self.args.PTBUILD, "mocks"
        )
        return pt.wrappedos.realpath(mock_dir)

    @staticmethod
    @functools.lru_cache(maxsize=None)
    def dirtag(filename):
        directory = pt.wrappedos.dirname(filename)
        return hashlib.sha1(directory.encode("utf-8")).hexdigest()[:8]

    def _pathname(self, kind, filename, test, suffix=""):
        name = os.path.basename(filename) + suffix
        return os.path.join(self.preprocess_dir(), kind, test, Namer.dirtag(filename), name)

    @functools.lru_cache(maxsize=None)
    def preprocessed_header_pathname(self, filename, test):
        """ Where the preprocessed version of a header to be mocked goes """
        return self._pathname("headers", filename, test)

    @functools.lru_cache(maxsize=None)
    def preprocessed_test_pathname(self, filename, test):
        return self._pathname("tests", filename, test)

    @functools.lru_cache(maxsize=None)
    def directives_file_pathname(self, filename, test):
        return self._pathname("directives", filename, test)

    @functools.lru_cache(maxsize=None)
    def includes_list_pathname(self, filename, test):
        return self._pathname("includes", filename, test, suffix=".yml")

    @functools.lru_cache(maxsize=None)
    def mock_pathname(self, header):
        """ The mock generated from header.  adder.h gives <mock_dir>/mock_adder.h """
        prefix = getattr(self.args, "mock_prefix", "mock_")
        return os.path.join(self.mock_dir(), prefix + os.path.basename(header))
