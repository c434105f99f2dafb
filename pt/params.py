""" The parameters used to preprocess one file on behalf of one test """
import collections

import pt.utils
import pt.wrappedos

# filepath: realpath of the file being processed
# test: the test identity.  Namespaces every artifact derived from filepath.
# flags: ordered tuple of compiler flag strings, may be empty
# include_paths: ordered tuple of directories, may be empty
# defines: ordered tuple of NAME or NAME=VALUE strings, may be empty
CompileParams = collections.namedtuple(
    "CompileParams", ["filepath", "test", "flags", "include_paths", "defines"]
)


def create(args, filepath, test=None, directives=None):
    """ Assemble the CompileParams for filepath from the parsed configuration
        and, optionally, the build directives found in the test file.
        If test is not given then the test identity is derived from filepath.
    """
    if test is None:
        test = pt.utils.default_test_name(filepath)

    flags = list(pt.utils.split_flags(args.CPPFLAGS))
    include_paths = list(args.include)
    defines = list(args.defines)

    if directives is not None:
        flags.extend(directives.flags)
        include_paths.extend(directives.include_paths)
        defines.extend(directives.defines)

    return CompileParams(
        filepath=pt.wrappedos.realpath(filepath),
        test=test,
        flags=tuple(flags),
        include_paths=tuple(pt.utils.ordered_unique(include_paths)),
        defines=tuple(pt.utils.ordered_unique(defines)),
    )
