"""Allow ``python -m artifactory_build_info``."""

from artifactory_build_info.cli import main

main()
