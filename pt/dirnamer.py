""" Where the preprocessed files and #include listing files live.
    PTBUILD is taken from the command line, then the environment, then
    the pt.conf files and finally the appdirs user cache directory.
"""
import os

import appdirs

import pt.configutils


def add_arguments(cap):
    cap.add_argument(
        "--PTBUILD",
        default=user_build_dir(),
        help="Root directory for preprocessed files and #include listing files.",
    )


def user_build_dir(appname="pt", argv=None, verbose=0):
    builddir = pt.configutils.extract_value_from_argv("PTBUILD", argv)
    source = "command line"
    if not builddir:
        builddir = os.environ.get("PTBUILD")
        source = "environment"
    if not builddir:
        builddir = pt.configutils.extract_item_from_pt_conf("PTBUILD")
        source = "pt.conf"
    if not builddir:
        # On linux appdirs follows the XDG variables
        builddir = appdirs.user_cache_dir(appname)
        source = "appdirs"

    if verbose >= 4:
        print("Using PTBUILD={0} from the {1}".format(builddir, source))
    return builddir
