""" Command line and config file handling shared by the pt-* tools """
import configargparse

from pt.version import __version__
import pt.configutils
import pt.dirnamer
import pt.utils


def create_parser(description, argv=None):
    """ The configargparse singleton, reading pt.conf and the variant
        config before the environment and the command line.
    """
    variant = pt.configutils.extract_variant(argv=argv)
    return configargparse.getArgumentParser(
        description=description,
        formatter_class=configargparse.ArgumentDefaultsHelpFormatter,
        default_config_files=pt.configutils.config_files_from_variant(variant, argv=argv),
        args_for_setting_config_path=["-c", "--config"],
        ignore_unknown_config_file_keys=True,
    )


def add_base_arguments(cap, argv=None, variant=None):
    # The variant has already been pulled out of argv to choose the
    # config files.  It is added here so that it shows up in --help.
    if variant is None:
        variant = pt.configutils.extract_variant(argv=argv)

    cap.add(
        "--variant",
        default=variant,
        help="Which <variant>.conf to read.  Give the name without the .conf",
    )
    cap.add(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Output verbosity. Add more v's to make it more verbose",
    )
    cap.add(
        "-q",
        "--quiet",
        action="count",
        default=0,
        help="Decrement verbosity",
    )
    cap.add("--version", action="version", version=__version__)
    cap.add("-?", action="help", help="Help")


def add_common_arguments(cap, argv=None, variant=None):
    """ The arguments every preprocessing tool needs.
        Safe to call more than once on the same parser.
    """
    if any(action.dest == "CPPFLAGS" for action in cap._actions):
        return

    add_base_arguments(cap, argv=argv, variant=variant)
    pt.dirnamer.add_arguments(cap)
    cap.add("--CC", default="gcc", help="C compiler")
    cap.add(
        "--CPP",
        default="unsupplied_implies_use_CC",
        help="C preprocessor.  Defaults to the C compiler.",
    )
    cap.add("--CPPFLAGS", default="", help="C preprocessor flags")
    cap.add(
        "--include",
        action="append",
        default=[],
        help="Extra include path.  Repeat the option for more than one, "
        "or quote a whitespace separated list.",
    )
    cap.add(
        "--define",
        dest="defines",
        action="append",
        default=[],
        help="Extra macro definition, NAME or NAME=VALUE.  Repeat the option "
        "for more than one, or quote a whitespace separated list.",
    )
    pt.utils.add_flag_argument(
        parser=cap,
        name="use-test-preprocessor",
        dest="use_test_preprocessor",
        default=False,
        help="Run test files through the real preprocessor to find their "
        "#include statements rather than scanning the text.",
    )


def unsupplied_replacement(variable, default_variable, verbose, variable_str):
    """ A value containing "unsupplied" stands for default_variable """
    if "unsupplied" not in variable:
        return variable
    if verbose >= 4:
        print("{0} was unsupplied. Using {1}".format(variable_str, default_variable))
    return default_variable


def _substitute_CC_for_missing(args):
    if hasattr(args, "CPP"):
        args.CPP = unsupplied_replacement(args.CPP, args.CC, args.verbose, "CPP")


def _normalise_list_arguments(args):
    """ Config files and quoted arguments deliver lists as one string.
        Split them into words. """
    for attr in ("include", "defines"):
        if hasattr(args, attr):
            setattr(args, attr, list(pt.utils.split_flags(getattr(args, attr) or [])))


def _commonsubstitutions(args):
    args.verbose -= args.quiet
    _substitute_CC_for_missing(args)
    _normalise_list_arguments(args)


# Called, in order, on the parsed args by substitutions()
_substitutioncallbacks = [_commonsubstitutions]


def resetcallbacks():
    """ Tests use this to forget any registered callbacks """
    global _substitutioncallbacks
    _substitutioncallbacks = [_commonsubstitutions]


def registercallback(callback):
    """ callback(args) will be called after the common substitutions """
    _substitutioncallbacks.append(callback)


def substitutions(args, verbose=None):
    if verbose is None:
        verbose = args.verbose

    for func in _substitutioncallbacks:
        func(args)

    if verbose >= 2:
        verbose_print_args(args)


def parseargs(cap, argv=None, verbose=None):
    args = cap.parse_args(args=argv)
    substitutions(args, verbose)
    return args


def verbose_print_args(args):
    print("Final aggregated variables for preprocessing:")
    width = max((len(attr) for attr in vars(args)), default=0) + 1
    for attr, value in sorted(vars(args).items()):
        print("{0:{1}}: {2}".format(attr, width, "" if value is None else value))
