""" Find the config files for a run.

    Settings are taken, highest priority first, from
        the command line
        environment variables
        the variant config (<variant>.conf, or whatever -c/--config names)
        pt.conf
        defaults
    and the config files are searched for in
        the current working directory
        ./pt.conf.d
        the user config directory (~/.config/pt on linux)
        the site config directory (/etc/xdg/pt on linux)
"""
import os
import sys

import appdirs
from configargparse import DefaultConfigFileParser

import pt.utils

DEFAULT_VARIANT = "test"


def extract_value_from_argv(key, argv=None, default=None):
    """ Pull -key=value, --key=value, -key value or --key value out of argv
        before configargparse has been set up.  The last occurrence wins.
    """
    if argv is None:
        argv = sys.argv

    value = default
    for index, arg in enumerate(argv):
        for hyphens in ("-", "--"):
            option = hyphens + key
            if arg.startswith(option + "="):
                value = arg.split("=", 1)[1]
            elif arg == option and index + 1 < len(argv):
                value = argv[index + 1]
    return value


def config_directories(user_config_dir=None, system_config_dir=None):
    """ The directories that may hold config files, highest priority first """
    if user_config_dir is None:
        user_config_dir = appdirs.user_config_dir(appname="pt")
    if system_config_dir is None:
        system_config_dir = appdirs.site_config_dir(appname="pt")

    cwd = os.getcwd()
    candidates = [cwd, os.path.join(cwd, "pt.conf.d"), user_config_dir, system_config_dir]
    return pt.utils.ordered_unique(candidates)


def pt_conf_files(user_config_dir=None, system_config_dir=None):
    """ The pt.conf files that exist, lowest priority first """
    directories = config_directories(user_config_dir, system_config_dir)
    candidates = [os.path.join(directory, "pt.conf") for directory in reversed(directories)]
    return [cfg for cfg in candidates if os.path.isfile(cfg)]


def extract_item_from_pt_conf(key, user_config_dir=None, system_config_dir=None, default=None):
    """ The value of key in the highest priority pt.conf that sets it """
    parser = DefaultConfigFileParser()
    for cfgpath in reversed(pt_conf_files(user_config_dir, system_config_dir)):
        with open(cfgpath) as cfg:
            items = parser.parse(cfg)
        if key in items:
            return items[key]
    return default


def extract_variant(argv=None, user_config_dir=None, system_config_dir=None):
    """ The variant picks the <variant>.conf file, so it has to be known
        before the parser exists.  Naming a config directly with -c/--config
        implies the variant (build/arm.conf implies arm).
    """
    if argv is None:
        argv = sys.argv

    config = extract_value_from_argv("config", argv) or extract_value_from_argv("c", argv)
    if config:
        name = os.path.basename(config)
        return name[: -len(".conf")] if name.endswith(".conf") else name

    variant = extract_item_from_pt_conf(
        "variant", user_config_dir, system_config_dir, default=DEFAULT_VARIANT
    )
    variant = os.environ.get("variant", variant)
    return extract_value_from_argv("variant", argv, default=variant)


def config_files_from_variant(
    variant=None, argv=None, user_config_dir=None, system_config_dir=None
):
    """ The config files to hand to configargparse, lowest priority first.
        A missing variant config is not an error.
    """
    if argv is None:
        argv = sys.argv
    if variant is None:
        variant = extract_variant(argv, user_config_dir, system_config_dir)

    configs = pt_conf_files(user_config_dir, system_config_dir)

    config = extract_value_from_argv("config", argv) or extract_value_from_argv("c", argv)
    if config:
        configs.append(config)
    else:
        for directory in reversed(config_directories(user_config_dir, system_config_dir)):
            configs.append(os.path.join(directory, variant))
            configs.append(os.path.join(directory, variant + ".conf"))

    return [cfg for cfg in configs if os.path.isfile(cfg)]
