import os
import sys
import time
import types
import shutil
import unittest
import concurrent.futures

import yaml

import pt.unittesthelper as uth
import pt.diskcache
import pt.directives
import pt.headerdeps
import pt.namer
import pt.params
import pt.plugins
import pt.preprocessinator
import pt.preprocessor
import pt.reporter
from pt.plugins import Hook


class TestPreprocessinator(unittest.TestCase):
    def setUp(self):
        uth.reset()
        self.ctx = uth.TempDirContext()
        self.ctx.__enter__()
        self.tmpdir = os.path.realpath(self.ctx._tmpdir)
        self.builddir = os.path.join(self.tmpdir, "build")
        self.sampledir = uth.copy_samples("simple", self.tmpdir)
        self.testfile = os.path.join(self.sampledir, "test_adder.c")
        self.events = []

    def _create(self, extraargs=None, failures=()):
        self.args = uth.create_args(self.builddir, extraargs)
        self.reporter = uth.RecordingReporter(self.events)
        self.fake = uth.FakePreProcessor(failures=failures, events=self.events)
        namer = pt.namer.Namer(self.args)
        collaborators = pt.preprocessinator.Collaborators(
            directives=pt.directives.DirectiveExtractor(self.args, self.reporter),
            includes_handler=pt.headerdeps.create_includes_handler(
                self.args, reporter=self.reporter, preprocessor=self.fake, namer=namer
            ),
            preprocessor=self.fake,
            namer=namer,
            plugin_manager=pt.plugins.PluginManager(self.args, self.reporter),
            reporter=self.reporter,
        )
        self.preprocessinator = pt.preprocessinator.Preprocessinator(self.args, collaborators)
        self.plugin_manager = collaborators.plugin_manager
        return self.preprocessinator

    def _params(self, filename, test=None):
        directives = self.preprocessinator.extract_test_build_directives(self.testfile)
        return pt.params.create(self.args, filename, test=test, directives=directives)

    def _record(self, hook, name):
        self.plugin_manager.register(hook, lambda ctx: self.events.append(name))

    def test_extract_test_build_directives(self):
        self._create()
        directives = self.preprocessinator.extract_test_build_directives(self.testfile)
        self.assertEqual(["ADDER_UNDER_TEST"], directives.defines)
        self.assertEqual(["adder.c"], directives.source_files)

    def test_extract_testing_context(self):
        self._create()
        includes = self.preprocessinator.extract_testing_context(self._params(self.testfile))
        self.assertEqual(["unity.h", "adder.h", "mock_types.h"], includes)
        self.assertEqual([], self.fake.calls)

    def test_accurate_include_extraction_is_logged(self):
        self._create(["--use-test-preprocessor"])
        self.preprocessinator.extract_testing_context(self._params(self.testfile))

        message = "Processing #include statements for test_adder.c..."
        self.assertIn((message, pt.reporter.Verbosity.NORMAL), self.reporter.logged)
        extracting = [
            index
            for index, logged in enumerate(self.reporter.messages)
            if logged.startswith("Extracting #include statements via preprocessor")
        ]
        self.assertEqual(1, len(extracting))
        self.assertLess(extracting[0], self.reporter.messages.index(message))
        self.assertEqual(["dependencies"], [kind for kind, realpath, params in self.fake.calls])

    def test_shallow_include_extraction_is_not_announced(self):
        self._create()
        self.preprocessinator.extract_testing_context(self._params(self.testfile))
        self.assertFalse(
            [message for message in self.reporter.messages if message.startswith("Processing")]
        )

    def test_process_test(self):
        self._create()
        preprocessed = self.preprocessinator.process_test(self.testfile)

        namer = self.preprocessinator.namer
        header = os.path.join(self.sampledir, "types.h")
        self.assertEqual(
            [
                namer.preprocessed_header_pathname(header, "test_adder"),
                namer.preprocessed_test_pathname(self.testfile, "test_adder"),
            ],
            preprocessed,
        )
        self.assertTrue(
            preprocessed[-1].startswith(
                os.path.join(self.builddir, "preprocess", "tests", "test_adder") + os.sep
            )
        )
        self.assertEqual("test_adder.c", os.path.basename(preprocessed[-1]))
        for pathname in preprocessed:
            self.assertTrue(os.path.isfile(pathname))

        self.assertEqual(
            [("preprocess", header), ("preprocess", self.testfile)],
            [(kind, realpath) for kind, realpath, params in self.fake.calls],
        )
        for kind, realpath, params in self.fake.calls:
            self.assertEqual("test_adder", params.test)
            self.assertIn("ADDER_UNDER_TEST", params.defines)

    def test_process_test_with_test_name(self):
        self._create()
        preprocessed = self.preprocessinator.process_test(self.testfile, test="adder_suite")
        self.assertEqual(
            self.preprocessinator.namer.preprocessed_test_pathname(self.testfile, "adder_suite"),
            preprocessed[-1],
        )
        self.assertIn(os.sep + "adder_suite" + os.sep, preprocessed[-1])

    def test_mock_dir_is_searched_first(self):
        self._create(["--include", "/opt/include"])
        self.preprocessinator.process_test(self.testfile)
        for kind, realpath, params in self.fake.calls:
            self.assertEqual(
                (self.preprocessinator.namer.mock_dir(), "/opt/include"), params.include_paths
            )

    def test_mocks_step_leaves_the_test_file_alone(self):
        self._create()
        preprocessed = self.preprocessinator.process_test(self.testfile, step="mocks")
        header = os.path.join(self.sampledir, "types.h")
        self.assertEqual(
            [self.preprocessinator.namer.preprocessed_header_pathname(header, "test_adder")],
            preprocessed,
        )
        self.assertEqual([header], [realpath for kind, realpath, params in self.fake.calls])

    def test_tests_step_skips_the_mocks(self):
        self._create()
        self._record(Hook.PRE_MOCK_PREPROCESS, "pre_mock")
        preprocessed = self.preprocessinator.process_test(self.testfile, step="tests")
        self.assertEqual(
            [self.preprocessinator.namer.preprocessed_test_pathname(self.testfile, "test_adder")],
            preprocessed,
        )
        self.assertEqual(["preprocess"], self.events)

    def test_mock_hooks_name_the_mock_file(self):
        self._create(["--mock-dir", os.path.join(self.tmpdir, "generated")])
        contexts = []
        self.plugin_manager.register(Hook.PRE_MOCK_PREPROCESS, contexts.append)
        self.plugin_manager.register(Hook.PRE_TEST_PREPROCESS, contexts.append)
        self.preprocessinator.process_test(self.testfile)

        mock_context, test_context = contexts
        self.assertEqual(
            os.path.join(self.tmpdir, "generated", "mock_types.h"), mock_context.mock_file
        )
        self.assertIsNone(test_context.mock_file)

    def test_missing_mocked_header(self):
        self._create()
        testfile = uth.write_file(
            os.path.join(self.sampledir, "test_missing.c"), '#include "mock_nowhere.h"\n'
        )
        with self.assertRaises(pt.headerdeps.ExtractionError):
            self.preprocessinator.process_test(testfile)

    def test_mocked_header_found_on_include_path(self):
        self._create()
        incdir = os.path.join(self.tmpdir, "inc")
        uth.write_file(os.path.join(incdir, "remote.h"), "int remote(void);\n")
        params = self._params(self.testfile)._replace(include_paths=(incdir,))
        self.assertEqual(
            os.path.join(incdir, "remote.h"),
            self.preprocessinator.find_mocked_header(params, "mock_remote.h"),
        )

    def test_hooks_surround_the_preprocessor(self):
        self._create()
        self._record(Hook.PRE_MOCK_PREPROCESS, "pre_mock")
        self._record(Hook.POST_MOCK_PREPROCESS, "post_mock")
        self._record(Hook.PRE_TEST_PREPROCESS, "pre_test")
        self._record(Hook.POST_TEST_PREPROCESS, "post_test")

        self.preprocessinator.process_test(self.testfile)
        self.assertEqual(
            ["pre_mock", "preprocess", "post_mock", "pre_test", "preprocess", "post_test"],
            self.events,
        )

    def test_post_hook_sees_the_result(self):
        self._create()
        contexts = []
        self.plugin_manager.register(Hook.POST_MOCK_PREPROCESS, contexts.append)
        header = os.path.join(self.sampledir, "adder.h")
        preprocessed = self.preprocessinator.preprocess_mockable_header_file(
            self._params(header)
        )

        context = contexts[0]
        self.assertEqual(header, context.header_file)
        self.assertEqual(preprocessed, context.preprocessed_header_file)
        self.assertTrue(context.shell_result.success)
        self.assertEqual(["types.h"], context.includes)

    def test_post_hook_fires_when_preprocessing_fails(self):
        self._create(failures=[self.testfile])
        contexts = []
        self._record(Hook.PRE_TEST_PREPROCESS, "pre_test")
        self.plugin_manager.register(Hook.POST_TEST_PREPROCESS, contexts.append)

        with self.assertRaises(pt.preprocessor.PreprocessorError) as cm:
            self.preprocessinator.preprocess_test_file(self._params(self.testfile))
        self.assertEqual(self.testfile, cm.exception.filename)
        self.assertEqual(["pre_test", "preprocess"], self.events)
        self.assertEqual(1, len(contexts))
        self.assertFalse(contexts[0].shell_result.success)

    def test_post_hook_fires_when_include_extraction_fails(self):
        self._create()
        contexts = []
        self.plugin_manager.register(Hook.POST_TEST_PREPROCESS, contexts.append)
        params = self._params(self.testfile)._replace(
            filepath=os.path.join(self.sampledir, "test_gone.c")
        )
        with self.assertRaises(pt.headerdeps.ExtractionError):
            self.preprocessinator.preprocess_test_file(params)
        self.assertEqual(1, len(contexts))
        self.assertIsNone(contexts[0].shell_result)
        self.assertEqual([], self.fake.calls)

    def test_failing_hook_raises_after_preprocessing(self):
        self._create()

        def broken(ctx):
            raise RuntimeError("plugin broke")

        self.plugin_manager.register(Hook.PRE_TEST_PREPROCESS, broken)
        self._record(Hook.POST_TEST_PREPROCESS, "post_test")
        params = self._params(self.testfile)

        with self.assertRaises(pt.plugins.HookError) as cm:
            self.preprocessinator.preprocess_test_file(params)
        self.assertIn("plugin broke", str(cm.exception))
        self.assertEqual(["error", "preprocess", "post_test"], self.events)
        self.assertTrue(
            os.path.isfile(
                self.preprocessinator.namer.preprocessed_test_pathname(self.testfile, params.test)
            )
        )

    def test_pre_hook_changes_reach_the_preprocessor(self):
        self._create()

        def adjust(ctx):
            ctx.defines.append("FROM_HOOK")
            ctx.include_paths.insert(0, "/opt/hook/include")

        self.plugin_manager.register(Hook.PRE_TEST_PREPROCESS, adjust)
        preprocessed = self.preprocessinator.preprocess_test_file(self._params(self.testfile))

        kind, realpath, params = self.fake.calls[-1]
        self.assertEqual(("ADDER_UNDER_TEST", "FROM_HOOK"), params.defines)
        self.assertEqual("/opt/hook/include", params.include_paths[0])
        with open(preprocessed) as ff:
            self.assertIn("FROM_HOOK", ff.read())

    def test_preprocess_file_directives(self):
        self._create()
        self._record(Hook.PRE_TEST_PREPROCESS, "pre_test")
        self._record(Hook.POST_TEST_PREPROCESS, "post_test")

        preprocessed = self.preprocessinator.preprocess_file_directives(
            self._params(self.testfile)
        )
        self.assertEqual(
            self.preprocessinator.namer.directives_file_pathname(self.testfile, "test_adder"),
            preprocessed,
        )
        self.assertEqual(["preprocess_directives"], self.events)

    def test_tests_sharing_a_header_do_not_collide(self):
        self._create()
        header = os.path.join(self.sampledir, "adder.h")
        base = self._params(header)

        with concurrent.futures.ThreadPoolExecutor(max_workers=4) as executor:
            futures = {
                test: executor.submit(
                    self.preprocessinator.preprocess_mockable_header_file,
                    base._replace(test=test),
                )
                for test in ("test_one", "test_two", "test_three", "test_four")
            }
            results = {test: future.result() for test, future in futures.items()}

        self.assertEqual(4, len(set(results.values())))
        for test, preprocessed in results.items():
            self.assertEqual(test, os.path.basename(os.path.dirname(os.path.dirname(preprocessed))))
            with open(preprocessed) as ff:
                self.assertIn("for " + test, ff.read())

    def test_same_basename_headers_in_parallel(self):
        self._create()
        past = time.time() - 100
        sources = {
            "alpha": uth.write_file(
                os.path.join(self.tmpdir, "a", "config.h"), '#include "alpha.h"\n', mtime=past
            ),
            "beta": uth.write_file(
                os.path.join(self.tmpdir, "b", "config.h"), '#include "beta.h"\n', mtime=past
            ),
            "gamma": uth.write_file(
                os.path.join(self.tmpdir, "c", "other.h"), '#include "gamma.h"\n', mtime=past
            ),
        }
        base = self._params(self.testfile)._replace(test="test_cfg")

        with concurrent.futures.ThreadPoolExecutor(max_workers=3) as executor:
            futures = {
                name: executor.submit(
                    self.preprocessinator.preprocess_mockable_header_file,
                    base._replace(filepath=source),
                )
                for name, source in sources.items()
            }
            results = {name: future.result() for name, future in futures.items()}

        self.assertEqual(3, len(set(results.values())))
        self.assertEqual("config.h", os.path.basename(results["alpha"]))
        self.assertEqual("config.h", os.path.basename(results["beta"]))

        namer = self.preprocessinator.namer
        cache = pt.diskcache.DiskCache(self.args, namer)
        records = set()
        for name, source in sources.items():
            with open(results[name]) as ff:
                self.assertIn("of " + source + " for test_cfg", ff.read())

            listing = namer.includes_list_pathname(source, "test_cfg")
            records.add(listing)
            with open(listing) as ff:
                record = yaml.safe_load(ff)
            self.assertEqual(source, record["source"])
            self.assertEqual([name + ".h"], record["includes"])
            self.assertEqual([name + ".h"], cache.load(source, "test_cfg"))
        self.assertEqual(3, len(records))

    def tearDown(self):
        self.ctx.__exit__(None, None, None)
        uth.reset()


class TestMain(unittest.TestCase):
    def setUp(self):
        uth.reset()

    def _namer(self, builddir, extraargs=None):
        namer = pt.namer.Namer(uth.create_args(builddir, extraargs))
        uth.reset()
        return namer

    def _simple_sample(self, tmpdir):
        """ The simple sample plus a stand in for unity.h """
        sampledir = uth.copy_samples("simple", tmpdir)
        uth.write_file(
            os.path.join(sampledir, "unity.h"),
            "#define TEST_ASSERT_EQUAL(expected, actual) ((void)((expected) == (actual)))\n",
        )
        return sampledir

    def test_missing_file_fails(self):
        with uth.TempDirContext() as ctx:
            status = pt.preprocessinator.main(
                ["--PTBUILD", os.path.join(ctx._tmpdir, "build"), "test_nonexistent.c"]
            )
        self.assertEqual(1, status)

    @unittest.skipIf(shutil.which("gcc") is None, "gcc is not installed")
    def test_real_preprocessor(self):
        filename = os.path.join(uth.samplesdir(), "conditional", "test_conditional.c")
        with uth.TempDirContext() as ctx:
            builddir = os.path.join(os.path.realpath(ctx._tmpdir), "build")
            preprocessed = self._namer(builddir).preprocessed_test_pathname(
                filename, "test_conditional"
            )
            status = pt.preprocessinator.main(
                ["--PTBUILD", builddir, "--define", "USE_FAST_MATH", "-j", "2", filename]
            )
            with open(preprocessed) as ff:
                text = ff.read()
        self.assertEqual(0, status)
        self.assertIn("fast_square", text)
        self.assertNotIn("slow_square", text)

    @unittest.skipIf(shutil.which("gcc") is None, "gcc is not installed")
    def test_real_preprocessor_mocks_then_tests(self):
        with uth.TempDirContext() as ctx:
            tmpdir = os.path.realpath(ctx._tmpdir)
            builddir = os.path.join(tmpdir, "build")
            sampledir = self._simple_sample(tmpdir)
            testfile = os.path.join(sampledir, "test_adder.c")
            header = os.path.join(sampledir, "types.h")
            namer = self._namer(builddir)
            preprocessed_test = namer.preprocessed_test_pathname(testfile, "test_adder")

            status = pt.preprocessinator.main(["--PTBUILD", builddir, "--step", "mocks", testfile])
            self.assertEqual(0, status)
            self.assertTrue(
                os.path.isfile(namer.preprocessed_header_pathname(header, "test_adder"))
            )
            self.assertFalse(os.path.exists(preprocessed_test))

            # What a mock generator would do with the preprocessed header
            uth.write_file(namer.mock_pathname(header), "typedef int mocked_number_t;\n")

            uth.reset()
            status = pt.preprocessinator.main(["--PTBUILD", builddir, "--step", "tests", testfile])
            self.assertEqual(0, status)
            with open(preprocessed_test) as ff:
                text = ff.read()
        self.assertIn("typedef int mocked_number_t;", text)
        self.assertIn("number_t add(number_t a, number_t b);", text)

    @unittest.skipIf(shutil.which("gcc") is None, "gcc is not installed")
    def test_real_preprocessor_without_mocks_fails(self):
        with uth.TempDirContext() as ctx:
            tmpdir = os.path.realpath(ctx._tmpdir)
            testfile = os.path.join(self._simple_sample(tmpdir), "test_adder.c")
            status = pt.preprocessinator.main(
                ["--PTBUILD", os.path.join(tmpdir, "build"), "--step", "tests", testfile]
            )
        self.assertEqual(1, status)

    @unittest.skipIf(shutil.which("gcc") is None, "gcc is not installed")
    def test_real_preprocessor_with_mock_generator_plugin(self):
        generated = []

        def generate(ctx):
            uth.write_file(ctx.mock_file, "typedef int mocked_number_t;\n")
            generated.append(ctx.mock_file)

        plugin = types.ModuleType("pt_mock_generator")
        plugin.register = lambda manager: manager.register(Hook.POST_MOCK_PREPROCESS, generate)
        sys.modules["pt_mock_generator"] = plugin
        try:
            with uth.TempDirContext() as ctx:
                tmpdir = os.path.realpath(ctx._tmpdir)
                mockdir = os.path.join(tmpdir, "mocks")
                testfile = os.path.join(self._simple_sample(tmpdir), "test_adder.c")
                builddir = os.path.join(tmpdir, "build")
                preprocessed_test = self._namer(builddir).preprocessed_test_pathname(
                    testfile, "test_adder"
                )
                status = pt.preprocessinator.main(
                    [
                        "--PTBUILD",
                        builddir,
                        "--mock-dir",
                        mockdir,
                        "--plugins",
                        "pt_mock_generator",
                        testfile,
                    ]
                )
                with open(preprocessed_test) as ff:
                    text = ff.read()
        finally:
            del sys.modules["pt_mock_generator"]
        self.assertEqual(0, status)
        self.assertEqual([os.path.join(mockdir, "mock_types.h")], generated)
        self.assertIn("typedef int mocked_number_t;", text)

    def tearDown(self):
        uth.reset()


if __name__ == "__main__":
    unittest.main()
