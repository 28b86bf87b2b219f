from __future__ import annotations

# Temp root directory name under the system temp dir.
LABEL = "withExEditor"

# Key of host status messages.
HOST = "withExEditorHost"

# Inbound commands.
EDITOR_CONFIG_GET = "getEditorConfig"
LOCAL_FILE_VIEW = "viewLocalFile"
TMP_FILE_CREATE = "createTmpFile"
TMP_FILE_GET = "getTmpFile"
TMP_FILES_PB_REMOVE = "removePrivateTmpFiles"

# Outbound replies.
EDITOR_CONFIG_RES = "resEditorConfig"
TMP_FILE_DATA_PORT = "portFileData"
TMP_FILE_RES = "resTmpFile"

# Cache categories.
TMP_FILES = "tmpFiles"
TMP_FILES_PB = "tmpFilesPb"

PROCESS_CHILD = "childProcess"

STATUS_READY = "ready"
STATUS_WARN = "warn"
STATUS_ERROR = "error"
STATUS_EXIT = "exit"
STATUS_CHILD_STDOUT = f"{PROCESS_CHILD}_stdout"
STATUS_CHILD_STDERR = f"{PROCESS_CHILD}_stderr"

EDITOR_CONFIG_FILE = "editorconfig.json"
