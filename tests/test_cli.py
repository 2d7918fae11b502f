import io
import json
import os
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest import mock

from fakes import FakeOctopusClient
from rich.console import Console

from octo_provisioner import cli
from octo_provisioner.provider import Provider


class ParserTests(unittest.TestCase):
    def test_global_options_and_subcommand(self) -> None:
        args = cli.build_parser().parse_args(["--config", "c.json", "--state", "s.json", "apply", "defs.json"])
        self.assertEqual(args.config, "c.json")
        self.assertEqual(args.state, "s.json")
        self.assertEqual(args.command, "apply")
        self.assertEqual(args.file, "defs.json")

    def test_resources_type_option(self) -> None:
        args = cli.build_parser().parse_args(["resources", "-t", "octopusdeploy_feed"])
        self.assertEqual(args.resource_type, "octopusdeploy_feed")

    def test_command_is_required(self) -> None:
        with redirect_stdout(io.StringIO()), mock.patch("sys.stderr", io.StringIO()):
            with self.assertRaises(SystemExit):
                cli.build_parser().parse_args([])


class CommandTests(unittest.TestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.tmp = Path(tmp.name)

        env = mock.patch.dict(os.environ)
        env.start()
        self.addCleanup(env.stop)
        for name in ("OCTOPUS_URL", "OCTOPUS_APIKEY", "OCTOPUS_SPACE_ID", "OCTO_PROVISIONER_STATE"):
            os.environ.pop(name, None)

        self.config_path = self.tmp / "config.json"
        self.config_path.write_text(
            json.dumps(
                {
                    "server": {"address": "https://octopus.example.com", "api_key": "API-KEY"},
                    "state": {"path": str(self.tmp / "state" / "state.json")},
                }
            ),
            encoding="utf-8",
        )

        self.client = FakeOctopusClient()
        self.client.add_project(step_ids=["existing"])
        provider = mock.patch.object(cli, "Provider", lambda config: Provider(config, client=self.client))
        provider.start()
        self.addCleanup(provider.stop)

        self.console_output = io.StringIO()
        console = mock.patch.object(cli, "console", Console(file=self.console_output, width=200))
        console.start()
        self.addCleanup(console.stop)

    def write_definitions(self, resources) -> str:
        path = self.tmp / "resources.json"
        path.write_text(json.dumps({"resources": resources}), encoding="utf-8")
        return str(path)

    def run_cli(self, *argv: str):
        stdout = io.StringIO()
        with redirect_stdout(stdout):
            code = cli.run_cli(["--config", str(self.config_path), *argv])
        return code, stdout.getvalue()

    def test_resources_lists_types(self) -> None:
        code, _ = self.run_cli("resources")
        self.assertEqual(code, 0)
        output = self.console_output.getvalue()
        self.assertIn("octopusdeploy_deployment_step_iis_website", output)
        self.assertIn("octopusdeploy_account", output)

    def test_resources_shows_one_schema(self) -> None:
        code, _ = self.run_cli("resources", "--type", "octopusdeploy_account")
        self.assertEqual(code, 0)
        output = self.console_output.getvalue()
        self.assertIn("account_type", output)
        self.assertIn("force new", output)

    def test_resources_unknown_type(self) -> None:
        code, stdout = self.run_cli("resources", "--type", "octopusdeploy_tenant")
        self.assertEqual(code, 1)
        self.assertIn("Unsupported resource type: octopusdeploy_tenant", stdout)

    def test_validate(self) -> None:
        good = self.write_definitions(
            [{"type": "octopusdeploy_feed", "name": "nuget", "config": {"name": "n", "feed_uri": "u"}}]
        )
        code, stdout = self.run_cli("validate", good)
        self.assertEqual(code, 0)
        self.assertIn("1 resource(s) valid", stdout)

        bad = self.write_definitions([{"type": "octopusdeploy_feed", "name": "nuget", "config": {"name": "n"}}])
        code, stdout = self.run_cli("validate", bad)
        self.assertEqual(code, 1)
        self.assertIn("octopusdeploy_feed.nuget", stdout)
        self.assertIn("feed_uri: required attribute is missing", stdout)

    def test_apply_show_destroy(self) -> None:
        definitions = self.write_definitions(
            [
                {
                    "type": "octopusdeploy_feed",
                    "name": "nuget",
                    "config": {"name": "n", "feed_uri": "https://nuget", "password": "hunter2"},
                },
                {
                    "type": "octopusdeploy_deployment_step_package",
                    "name": "web",
                    "config": {
                        "project_id": "Projects-1",
                        "step_name": "Deploy web",
                        "target_roles": ["web"],
                        "feed_id": "${octopusdeploy_feed.nuget.id}",
                        "package": "Acme.Web",
                        "first_step": True,
                    },
                },
            ]
        )

        code, stdout = self.run_cli("apply", definitions)
        self.assertEqual(code, 0)
        self.assertIn("created   octopusdeploy_feed.nuget", stdout)
        self.assertIn("Apply complete: 2 created, 0 updated, 0 replaced, 0 deleted, 0 unchanged.", stdout)
        self.assertEqual(len(self.client.step_ids()), 2)
        self.assertEqual(self.client.step_ids()[1], "existing")
        self.assertTrue((self.tmp / "state" / "state.json").is_file())

        code, _ = self.run_cli("show")
        self.assertEqual(code, 0)
        output = self.console_output.getvalue()
        self.assertIn("octopusdeploy_feed.nuget", output)
        self.assertIn("(sensitive)", output)
        self.assertNotIn("hunter2", output)

        code, stdout = self.run_cli("destroy")
        self.assertEqual(code, 0)
        self.assertIn("Destroy complete: 2 resource(s) deleted.", stdout)
        self.assertEqual(self.client.step_ids(), ["existing"])

    def test_refresh(self) -> None:
        definitions = self.write_definitions(
            [{"type": "octopusdeploy_feed", "name": "nuget", "config": {"name": "n", "feed_uri": "u"}}]
        )
        self.run_cli("apply", definitions)
        self.client.feeds.items.clear()

        code, stdout = self.run_cli("refresh")
        self.assertEqual(code, 0)
        self.assertIn("removed   octopusdeploy_feed.nuget", stdout)

    def test_show_empty_state(self) -> None:
        code, stdout = self.run_cli("show")
        self.assertEqual(code, 0)
        self.assertIn("No resources in state.", stdout)

    def test_state_option_overrides_config(self) -> None:
        state_path = self.tmp / "elsewhere.json"
        definitions = self.write_definitions(
            [{"type": "octopusdeploy_feed", "name": "nuget", "config": {"name": "n", "feed_uri": "u"}}]
        )
        self.run_cli("--state", str(state_path), "apply", definitions)
        self.assertTrue(state_path.is_file())

    def test_missing_definitions_file(self) -> None:
        code, stdout = self.run_cli("apply", str(self.tmp / "nope.json"))
        self.assertEqual(code, 1)
        self.assertTrue(stdout.startswith("❌"))


if __name__ == "__main__":
    unittest.main()
