"""runtap commands - session connection, execution, console and file API."""
