[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "hsctl"
version = "0.1.0"
description = "Mesh VPN control-server helpers: MagicDNS domains, DERP maps, a STUN responder, a key-value store and admin table formatting"
requires-python = ">=3.10"
keywords = ["vpn", "wireguard", "derp", "stun", "magicdns", "control-server"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]
dependencies = [
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
hsctl = "hsctl.cli.main:main"

[tool.hatch.build.targets.wheel]
packages = ["hsctl"]

[tool.pytest.ini_options]
addopts = "-ra"
