import unittest

from heal_deploy.orchestrator import ErrorKind, classify_error
from heal_deploy.orchestrator.classifier import RUNTIME_HINTS


class ClassifierTests(unittest.TestCase):
    def test_module_not_found_is_dependency_error(self) -> None:
        result = classify_error("Build failed: Module not found: Can't resolve 'react'")
        self.assertEqual(result.kind, ErrorKind.DEPENDENCY_ERROR)
        self.assertIn("Add missing dependencies to package.json", result.remediation_hints)

    def test_package_not_found_is_dependency_error(self) -> None:
        result = classify_error("npm ERR! package not found: left-pad")
        self.assertEqual(result.kind, ErrorKind.DEPENDENCY_ERROR)

    def test_unexpected_token_is_build_error(self) -> None:
        result = classify_error("Unexpected token '<' in src/App.tsx")
        self.assertEqual(result.kind, ErrorKind.BUILD_ERROR)
        self.assertEqual(
            result.remediation_hints,
            (
                "Check for syntax errors in your code",
                "Verify TypeScript configuration",
                "Check for missing semicolons or brackets",
            ),
        )

    def test_environment_is_config_error(self) -> None:
        result = classify_error("Missing ENVIRONMENT variable VITE_API_URL")
        self.assertEqual(result.kind, ErrorKind.CONFIG_ERROR)

    def test_bare_env_keyword_is_config_error(self) -> None:
        result = classify_error("missing env var API_URL")
        self.assertEqual(result.kind, ErrorKind.CONFIG_ERROR)
        self.assertIn("Verify .env file configuration", result.remediation_hints)

    def test_module_not_found_matches_any_case(self) -> None:
        for raw in ("MODULE NOT FOUND: lodash", "Module Not Found", "error: module not found"):
            with self.subTest(raw=raw):
                self.assertEqual(classify_error(raw).kind, ErrorKind.DEPENDENCY_ERROR)

    def test_dependency_rule_wins_over_build_rule(self) -> None:
        result = classify_error("syntax error while resolving: module not found: lodash")
        self.assertEqual(result.kind, ErrorKind.DEPENDENCY_ERROR)

    def test_build_rule_wins_over_config_rule(self) -> None:
        result = classify_error("Syntax error in .env loader")
        self.assertEqual(result.kind, ErrorKind.BUILD_ERROR)

    def test_unknown_message_is_runtime_error(self) -> None:
        result = classify_error("Connection reset by peer")
        self.assertEqual(result.kind, ErrorKind.RUNTIME_ERROR)
        self.assertEqual(result.remediation_hints, RUNTIME_HINTS)
        self.assertEqual(result.message, "Connection reset by peer")

    def test_empty_and_missing_messages_do_not_raise(self) -> None:
        for raw in ("", None):
            result = classify_error(raw)
            self.assertEqual(result.kind, ErrorKind.RUNTIME_ERROR)
            self.assertEqual(result.message, "")

    def test_location_is_carried_through(self) -> None:
        result = classify_error("module not found: vue", file="src/main.ts", line=3)
        self.assertEqual(result.file, "src/main.ts")
        self.assertEqual(result.line, 3)


if __name__ == "__main__":
    unittest.main()
