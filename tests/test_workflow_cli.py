import asyncio
import contextlib
import io
import json
import tempfile
import unittest
from pathlib import Path

from heal_deploy.cli import parse_env_pairs, run_cli
from heal_deploy.config import AppConfig, HostingConfig, LLMConfig
from heal_deploy.hosting import LocalDirectoryProvider, ProviderDeployment
from heal_deploy.orchestrator import DeploymentConfig, FileSet
from heal_deploy.workflow import DeploymentWorkflow, load_files

from test_repair import StubOracle, _fix_payload


class SlowProvider(LocalDirectoryProvider):
    async def deploy(self, project_id, config, files) -> ProviderDeployment:  # type: ignore[override]
        await asyncio.sleep(10)
        return ProviderDeployment(success=True)


class WorkflowTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.tmp = Path(self._tmp.name)
        self.project = self.tmp / "project"
        self.project.mkdir()
        self.config = AppConfig(
            llm=LLMConfig(provider="none"),
            hosting=HostingConfig(sites_root=str(self.tmp / "sites")),
            log_dir=str(self.tmp / "logs"),
        )

    def _write(self, relative: str, content: str) -> None:
        path = self.project / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")

    def test_load_files_skips_vcs_binaries_and_vendored(self) -> None:
        self._write("index.html", "<h1>hi</h1>")
        self._write("src/main.ts", "export {}")
        self._write(".git/HEAD", "ref: refs/heads/main")
        self._write("node_modules/react/index.js", "module.exports = {}")
        (self.project / "logo.png").write_bytes(b"\x89PNG\r\n\x1a\n\xff\xfe\x00")

        files = load_files(self.project)

        self.assertEqual(files.paths(), ["index.html", "src/main.ts", "node_modules/.vendored"])

    def test_load_files_requires_directory(self) -> None:
        with self.assertRaises(NotADirectoryError):
            load_files(self.tmp / "missing")

    def test_deploy_directory_publishes_site(self) -> None:
        self._write("index.html", "<h1>hi</h1>")
        workflow = DeploymentWorkflow(self.config)

        result = workflow.deploy_directory(self.project, DeploymentConfig(project_name="Demo Site"))

        self.assertTrue(result.success)
        self.assertEqual(result.deploy_url, "https://demo-site.netlify.app")
        self.assertTrue((self.tmp / "sites" / "demo-site" / "index.html").is_file())
        self.assertEqual([s.name for s in workflow.list_sites()], ["demo-site"])
        self.assertEqual(len(list((self.tmp / "logs").glob("deploy_*.json"))), 1)

    def test_deploy_directory_repairs_missing_dependency(self) -> None:
        self._write("index.html", "<div id='root'></div>")
        self._write("package.json", '{"dependencies": {}}')
        self._write("src/index.tsx", "import { render } from 'preact';\n")
        oracle = StubOracle([_fix_payload(("package.json", '{"dependencies": {"preact": "^10.0.0"}}'))])
        workflow = DeploymentWorkflow(self.config, oracle=oracle)

        result = workflow.deploy_directory(self.project, DeploymentConfig(project_name="demo"))

        self.assertTrue(result.success)
        self.assertEqual(result.attempts, 2)
        published = (self.tmp / "sites" / "demo" / "package.json").read_text(encoding="utf-8")
        self.assertIn("preact", published)

    def test_timeout_ends_as_cancelled(self) -> None:
        workflow = DeploymentWorkflow(self.config, provider=SlowProvider(self.tmp / "sites"))
        files = FileSet.from_pairs({"index.html": "x"})

        result = asyncio.run(workflow.run(files, DeploymentConfig(project_name="demo"), timeout=0.2))

        self.assertFalse(result.success)
        self.assertTrue(result.cancelled)

    def test_unknown_hosting_provider(self) -> None:
        self.config.hosting.provider = "ftp"
        with self.assertRaises(ValueError):
            DeploymentWorkflow(self.config)


class CLITests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.tmp = Path(self._tmp.name)
        self.config_path = self.tmp / "config.json"
        self.config_path.write_text(json.dumps({
            "llm": {"provider": "none"},
            "hosting": {"sites_root": str(self.tmp / "sites")},
            "log_dir": str(self.tmp / "logs"),
        }), encoding="utf-8")
        self.project = self.tmp / "my-site"
        self.project.mkdir()

    def test_parse_env_pairs(self) -> None:
        self.assertEqual(
            parse_env_pairs(["API_URL=https://x.test/?a=b", "EMPTY="]),
            {"API_URL": "https://x.test/?a=b", "EMPTY": ""},
        )
        with self.assertRaises(ValueError):
            parse_env_pairs(["NOVALUE"])

    def test_deploy_sites_and_logs(self) -> None:
        (self.project / "index.html").write_text("<h1>cli</h1>", encoding="utf-8")
        base = ["--config", str(self.config_path)]

        code = run_cli(base + ["deploy", "--dir", str(self.project), "--env", "A=1"])

        self.assertEqual(code, 0)
        self.assertTrue((self.tmp / "sites" / "my-site" / "index.html").is_file())
        self.assertEqual(run_cli(base + ["sites"]), 0)
        self.assertEqual(run_cli(base + ["logs", "--list"]), 0)
        self.assertEqual(run_cli(base + ["logs"]), 0)
        self.assertEqual(run_cli(base + ["logs", "--file", "missing.json"]), 1)

    def test_deploy_prints_local_site_location(self) -> None:
        (self.project / "index.html").write_text("<h1>cli</h1>", encoding="utf-8")

        output = io.StringIO()
        with contextlib.redirect_stdout(output):
            code = run_cli(["--config", str(self.config_path), "deploy", "--dir", str(self.project)])

        self.assertEqual(code, 0)
        site_uri = (self.tmp / "sites" / "my-site").resolve().as_uri()
        self.assertIn(f"Local: {site_uri}", output.getvalue())

    def test_logs_list_and_latest_together(self) -> None:
        (self.project / "index.html").write_text("<h1>cli</h1>", encoding="utf-8")
        base = ["--config", str(self.config_path)]
        self.assertEqual(run_cli(base + ["deploy", "--dir", str(self.project)]), 0)

        output = io.StringIO()
        with contextlib.redirect_stdout(output):
            code = run_cli(base + ["logs", "--list", "--latest"])

        self.assertEqual(code, 0)
        text = output.getvalue()
        self.assertIn("Deployment logs in", text)
        self.assertIn("Full log:", text)

    def test_logs_list_alone_skips_details(self) -> None:
        (self.project / "index.html").write_text("<h1>cli</h1>", encoding="utf-8")
        base = ["--config", str(self.config_path)]
        self.assertEqual(run_cli(base + ["deploy", "--dir", str(self.project)]), 0)

        output = io.StringIO()
        with contextlib.redirect_stdout(output):
            code = run_cli(base + ["logs", "--list"])

        self.assertEqual(code, 0)
        self.assertNotIn("Full log:", output.getvalue())

    def test_failed_deploy_exit_code(self) -> None:
        (self.project / "readme.txt").write_text("no entry point", encoding="utf-8")
        code = run_cli([
            "--config", str(self.config_path),
            "deploy", "--dir", str(self.project), "--max-attempts", "1",
        ])
        self.assertEqual(code, 1)


if __name__ == "__main__":
    unittest.main()
