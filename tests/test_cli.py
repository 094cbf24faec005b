"""Tests for cli/main.py - argument handling and exit codes."""
import sys
import os
import io
import tempfile
import shutil
import unittest
from contextlib import redirect_stdout, redirect_stderr
from unittest import mock

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from ptx_build.cli.main import main, build_parser
from fake_toolchain import install_fake_tools, make_player_dir, write_tune, read_text


@unittest.skipIf(os.name == 'nt', "fake tools are POSIX scripts")
class TestMain(unittest.TestCase):

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        self.root = os.path.join(self.test_dir, "player")
        self.bin_dir = install_fake_tools(os.path.join(self.test_dir, "bin"))
        make_player_dir(self.root)
        write_tune(os.path.join(self.root, "tunes", "altitude.pt3"))

        self.env_patch = mock.patch.dict(os.environ, {
            "PATH": self.bin_dir + os.pathsep + os.environ.get("PATH", ""),
        })
        self.env_patch.start()
        for key in ("ORG", "OUTDIR", "SJASMPLUS", "APPMAKE",
                    "FAKE_APPMAKE_MODE", "FAKE_SJASMPLUS_FAIL", "FAKE_TOOL_LOG"):
            os.environ.pop(key, None)

    def tearDown(self):
        self.env_patch.stop()
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def run_main(self, *argv):
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            try:
                code = main(list(argv))
            except SystemExit as e:
                code = e.code
        self.stdout, self.stderr = out.getvalue(), err.getvalue()
        return code

    def snapshot(self):
        files = {}
        for dirpath, _, names in os.walk(self.root):
            for name in names:
                path = os.path.join(dirpath, name)
                with open(path, 'rb') as f:
                    files[path] = f.read()
        return files

    def test_success(self):
        code = self.run_main("-C", self.root, "altitude.pt3")
        self.assertEqual(code, 0, self.stderr)
        self.assertTrue(os.path.isfile(os.path.join(self.root, "build", "altitude.ihx")))
        self.assertIn("[YM2149] built: build/altitude.ihx", self.stdout)

    def test_no_arguments(self):
        before = self.snapshot()
        self.assertEqual(self.run_main(), 2)
        self.assertIn("usage:", self.stderr)
        self.assertEqual(self.snapshot(), before)

    def test_two_arguments(self):
        before = self.snapshot()
        self.assertEqual(self.run_main("-C", self.root, "a.pt3", "b.pt3"), 2)
        self.assertEqual(self.snapshot(), before)

    def test_invalid_extension_exit_code(self):
        write_tune(os.path.join(self.root, "tunes", "song.ay"))
        code = self.run_main("-C", self.root, "song.ay")
        self.assertEqual(code, 1)
        self.assertIn("ERROR: tune must be .pt2 or .pt3", self.stderr)
        self.assertEqual(read_text(os.path.join(self.root, "tune.inc")), "; placeholder\n")

    def test_not_found_exit_code(self):
        code = self.run_main("-C", self.root, "nope.pt3")
        self.assertEqual(code, 1)
        self.assertIn("ERROR: tune not found: 'nope.pt3'", self.stderr)

    def test_org_from_env(self):
        os.environ["ORG"] = "0x8000"
        self.assertEqual(self.run_main("-C", self.root, "altitude.pt3"), 0)
        self.assertIn("org:  32768 (0x8000)", self.stdout)

    def test_org_option_overrides_env(self):
        os.environ["ORG"] = "0x8000"
        self.assertEqual(self.run_main("-C", self.root, "--org", "0xA000", "altitude.pt3"), 0)
        self.assertIn("org:  40960 (0xA000)", self.stdout)

    def test_invalid_org(self):
        os.environ["ORG"] = "somewhere"
        before = self.snapshot()
        self.assertEqual(self.run_main("-C", self.root, "altitude.pt3"), 1)
        self.assertIn("ORG must be an integer", self.stderr)
        self.assertEqual(self.snapshot(), before)

    def test_outdir_from_env(self):
        outdir = os.path.join(self.test_dir, "cf")
        os.environ["OUTDIR"] = outdir
        self.assertEqual(self.run_main("-C", self.root, "altitude.pt3"), 0)
        with open(os.path.join(outdir, "altitude.ihx"), 'rb') as f:
            copied = f.read()
        with open(os.path.join(self.root, "build", "altitude.ihx"), 'rb') as f:
            self.assertEqual(f.read(), copied)

    def test_check_only(self):
        before = self.snapshot()
        self.assertEqual(self.run_main("-C", self.root, "--check"), 0)
        self.assertIn("(OK)", self.stdout)
        self.assertEqual(self.snapshot(), before)

    def test_check_missing_tool(self):
        code = self.run_main("-C", self.root, "--check", "--appmake", "ptx-no-such-appmake")
        self.assertEqual(code, 1)
        self.assertIn("ERROR: ptx-no-such-appmake not found in PATH", self.stderr)

    def test_assembler_failure_exit_code(self):
        os.environ["FAKE_SJASMPLUS_FAIL"] = "1"
        self.assertEqual(self.run_main("-C", self.root, "altitude.pt3"), 1)
        self.assertIn("ERROR: sjasmplus failed", self.stderr)

    def test_interrupt(self):
        with mock.patch("ptx_build.cli.main.build_ihx", side_effect=KeyboardInterrupt):
            self.assertEqual(self.run_main("-C", self.root, "altitude.pt3"), 130)

    def test_unexpected_error(self):
        with mock.patch("ptx_build.cli.main.build_ihx", side_effect=RuntimeError("disk on fire")):
            self.assertEqual(self.run_main("-C", self.root, "altitude.pt3"), 1)
        self.assertIn("Unexpected error: disk on fire", self.stderr)
        self.assertIn("--debug", self.stderr)


class TestParser(unittest.TestCase):

    def test_defaults(self):
        args = build_parser().parse_args(["tune.pt3"])
        self.assertEqual(args.tune, "tune.pt3")
        self.assertIsNone(args.org)
        self.assertIsNone(args.outdir)
        self.assertFalse(args.check)
        self.assertEqual(args.verbose, 0)

    def test_verbose_count(self):
        args = build_parser().parse_args(["-vv", "tune.pt3"])
        self.assertEqual(args.verbose, 2)


if __name__ == '__main__':
    unittest.main()
