import sys
import os
import unittest
from unittest.mock import patch

# Add the project root to the Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..')))

from fittrack.core import config_loader
from fittrack.core.config_loader import apply_env_overrides, get_config, reload_config, validate_required_env_vars


class TestConfigLoader(unittest.TestCase):

    def tearDown(self):
        reload_config()

    def test_get_config_loads_defaults(self):
        """
        Tests that settings.yaml and logging_config.yaml are merged.
        """
        config = get_config()

        self.assertEqual(config["app"]["name"], "FitTrack API")
        self.assertEqual(config["chatbot"]["max_action_hops"], 10)
        self.assertEqual(config["dashboard"]["default_calorie_goal"], 2000)
        self.assertEqual(config["logging"]["version"], 1)

    def test_get_config_returns_a_copy(self):
        config = get_config()
        config["app"]["name"] = "Changed"
        self.assertEqual(get_config()["app"]["name"], "FitTrack API")

    def test_env_overrides_nested_keys_with_coercion(self):
        config = {"nutrition": {"timeout_seconds": 5}, "app": {"debug": False}}
        apply_env_overrides(config, {
            "APP_NUTRITION__TIMEOUT_SECONDS": "10",
            "APP_APP__DEBUG": "true",
            "APP_SESSION__COOKIE_NAME": "sid",
            "UNRELATED": "ignored",
        })

        self.assertEqual(config["nutrition"]["timeout_seconds"], 10)
        self.assertIs(config["app"]["debug"], True)
        self.assertEqual(config["session"]["cookie_name"], "sid")
        self.assertNotIn("unrelated", config)

    def test_environment_is_applied_on_reload(self):
        with patch.dict(os.environ, {"APP_CHATBOT__MAX_ACTION_HOPS": "4"}):
            reload_config()
            self.assertEqual(get_config()["chatbot"]["max_action_hops"], 4)

    def test_validate_required_env_vars_warns_about_missing_secrets(self):
        env = {name: "" for name in config_loader.OPTIONAL_SECRETS}
        env["DATABASE_URL"] = "postgresql://localhost/fittrack"
        with patch.dict(os.environ, env):
            with self.assertLogs("fittrack.core.config_loader", level="WARNING"):
                missing = validate_required_env_vars()

        self.assertEqual(missing, ["API_NINJAS_API_KEY", "SESSION_SECRET_KEY"])


if __name__ == '__main__':
    unittest.main()
