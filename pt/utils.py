import os
import functools

import pt.wrappedos

HEADER_EXTENSIONS = frozenset(["h", "hh", "hpp", "hxx", "inl"])


@functools.lru_cache(maxsize=None)
def isheader(filename):
    """ Does the extension say that filename is a header? """
    return filename.rsplit(".", 1)[-1].lower() in HEADER_EXTENSIONS


def default_test_name(filename):
    """ test_adder.c is the test test_adder unless told otherwise """
    return os.path.splitext(os.path.basename(filename))[0]


def find_header(header, search_dirs):
    """ The realpath of the first search_dirs/header that exists, else None """
    for directory in search_dirs:
        trialpath = os.path.join(directory, header)
        if pt.wrappedos.isfile(trialpath):
            return pt.wrappedos.realpath(trialpath)
    return None


def clear_cache():
    isheader.cache_clear()


def add_flag_argument(parser, name, dest=None, default=False, help=None):
    """ Add a mutually exclusive --name / --no-name pair """
    dest = dest or name
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "--" + name,
        dest=dest,
        default=default,
        action="store_true",
        help=help + " Use --no-" + name + " to turn the feature off.",
    )
    group.add_argument("--no-" + name, dest=dest, action="store_false", default=not default)


def ordered_unique(iterable):
    """ The unique items of iterable in the order they were first seen """
    return list(dict.fromkeys(iterable))


def split_flags(flags):
    """ Flags come either as a single whitespace separated string
        (command line or config file) or as an iterable of such strings.
        Always return a tuple of individual flags.
    """
    if flags is None:
        return ()
    if isinstance(flags, str):
        return tuple(flags.split())
    return tuple(word for flag in flags for word in str(flag).split())
