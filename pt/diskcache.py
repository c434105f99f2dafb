import yaml

import pt.wrappedos


class DiskCache:
    """ Remember the #include list of a file on a per test basis.

        Each (filename, test) pair owns one YAML "#include statement listing
        file" whose path comes from the Namer.  For example
            source: /home/me/proj/test/test_adder.c
            test: test_adder
            includes:
            - unity.h
            - mock_adder.h

        The listing file is judged to be valid/invalid by comparing its
        modification time against the modification time of filename.
        It is only valid if it is strictly newer.  A listing file that
        cannot be read or parsed is treated as though it doesn't exist.

        Listing files are never removed by this class.
        No locking is done. Two callers working on the same
        (filename, test) pair at the same time may race.
    """

    def __init__(self, args, namer):
        self.args = args
        self.namer = namer

        # Keep a copy of the listing files in memory to reduce disk IO.
        # cachefile -> (mtime of cachefile when read, includes)
        self.cache = {}

    def cachefile(self, filename, test):
        """ What listing file corresponds to the given filename and test """
        return self.namer.includes_list_pathname(filename, test)

    def _any_changes(self, filename, cachefile):
        """ Has this file changed since the cachefile was modified? """
        try:
            return pt.wrappedos.getmtime(filename) >= pt.wrappedos.getmtime(cachefile)
        except OSError:
            # Either the cachefile doesn't exist yet
            # or the user moved filename out from under us.
            return True

    def newer(self, filename, test):
        """ Is there a listing file for (filename, test) that is strictly
            newer than filename?
        """
        return not self._any_changes(filename, self.cachefile(filename, test))

    def _read(self, cachefile):
        mtime = pt.wrappedos.getmtime(cachefile)
        try:
            cachedmtime, includes = self.cache[cachefile]
            if cachedmtime == mtime:
                return includes
        except KeyError:
            pass

        with open(cachefile, encoding="utf-8") as cf:
            record = yaml.safe_load(cf)

        includes = record["includes"]
        if not isinstance(includes, list) or not all(
            isinstance(include, str) for include in includes
        ):
            raise ValueError("includes is not a list of strings")

        self.cache[cachefile] = (mtime, includes)
        return includes

    def load(self, filename, test):
        """ Return the cached #include list or None if there is no
            usable listing file for (filename, test)
        """
        cachefile = self.cachefile(filename, test)
        if self._any_changes(filename, cachefile):
            return None

        try:
            return list(self._read(cachefile))
        except (OSError, yaml.YAMLError, KeyError, TypeError, ValueError) as err:
            if self.args.verbose >= 3:
                print(
                    "Ignoring unreadable #include statement listing file {0}: {1}".format(
                        cachefile, err
                    )
                )
            self.cache.pop(cachefile, None)
            return None

    def write(self, filename, test, includes):
        """ Unconditionally (re)write the listing file for (filename, test) """
        cachefile = self.cachefile(filename, test)
        pt.wrappedos.makedirs(pt.wrappedos.dirname(cachefile))
        record = {"source": filename, "test": test, "includes": list(includes)}
        with open(cachefile, mode="w", encoding="utf-8") as cf:
            yaml.safe_dump(record, cf, default_flow_style=False, sort_keys=False)

        self.cache[cachefile] = (pt.wrappedos.getmtime(cachefile), list(includes))
        if self.args.verbose >= 5:
            print("Wrote #include statement listing file " + cachefile)
        return cachefile

    def clear_cache(self):
        self.cache.clear()
