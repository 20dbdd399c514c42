"""Shared test constants for activity-tracker unit tests."""

# Projects and files
TEST_PROJECT = "demo-app"
TEST_OTHER_PROJECT = "billing-service"
TEST_FILE = "src/app.js"
TEST_OTHER_FILE = "src/util.js"

# Remote store
TEST_REPOSITORY = "activity-tracker"
TEST_LOG_PATH = "projects/demo-app/activity-log.json"
TEST_TOKEN = "ghp_test_token_abc123"
TEST_LOGIN = "octocat"
TEST_API_URL = "https://api.github.test"
TEST_SHA = "3d21ec53a331a6f037a91c368710b99387d012c1"
TEST_BRANCH = "activity"

# File contents
TEST_OLD_CONTENT = "function a(){}"
TEST_NEW_CONTENT = "function a(){}\nfunction b(){}"

# Remote log entries
TEST_EXISTING_ENTRY = {"id": 1}

# Timestamps (ISO 8601)
TEST_TIMESTAMP = "2024-06-15T12:00:00+00:00"

# Error messages
TEST_ERROR_NETWORK = "connection reset by peer"
