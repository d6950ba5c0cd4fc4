PROJECT_NAME = "Dumpster Directory"
API_V1_STR = "/api/v1"
