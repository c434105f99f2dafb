""" Wrap and cache a variety of os calls """
import os
import functools


@functools.lru_cache(maxsize=None)
def isfile(trialpath):
    """ Cached version of os.path.isfile """
    return os.path.isfile(trialpath)


@functools.lru_cache(maxsize=None)
def realpath(trialpath):
    """ Cache os.path.realpath """
    # Note: We can't raise an exception on file non-existence
    # because this is sometimes called in order to create the file.
    return os.path.realpath(trialpath)


@functools.lru_cache(maxsize=None)
def dirname(trialpath):
    """ A cached verion of os.path.dirname """
    return os.path.dirname(trialpath)


def getmtime(path):
    """ Uncached os.path.getmtime. Freshness checks must see files that
        were touched earlier in the same process.
    """
    return os.path.getmtime(path)


def makedirs(path):
    os.makedirs(path, exist_ok=True)


def clear_cache():
    isfile.cache_clear()
    realpath.cache_clear()
    dirname.cache_clear()
