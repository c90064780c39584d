# mirror <sysexits.h>
EXIT_OK = 0  # Normal success
EXIT_GENERIC = 1  # Generic failure (fallback)
EXIT_THRESHOLD = 2  # A benchmark degraded beyond the allowed threshold
EXIT_USAGE = 64  # Bad arguments (e.g., malformed run id or tag)
EXIT_DATAERR = 65  # Input data was invalid (e.g., corrupt record, no benchmark lines)
EXIT_NOINPUT = 66  # Requested run, baseline or profile does not exist
EXIT_IOERR = 74  # Storage directory could not be read or written
