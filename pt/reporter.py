""" Progress and error messages.
    Everything the preprocessing tools say goes through a Reporter so
    that verbosity is decided in one place.
"""
import os
import sys


class Verbosity:
    """ The -v count needed before a message is shown """

    NORMAL = 1
    OBNOXIOUS = 3
    DEBUG = 5


def generate_progress(message):
    return message + "..."


def generate_module_progress(operation, module_name, filename):
    """ "Preprocessing test_adder::adder.h..."
        The module name is omitted when it is just the filename without extension.
    """
    name = filename
    if module_name != os.path.splitext(filename)[0]:
        name = "::".join([module_name, filename])
    return generate_progress(" ".join([operation, name]))


class Reporter:
    def __init__(self, args):
        self.verbose = args.verbose

    def log(self, message, level=Verbosity.NORMAL):
        if self.verbose >= level:
            print(message)

    def error(self, message):
        sys.stderr.write(message + "\n")
