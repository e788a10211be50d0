[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "xv6py"
version = "0.1.0"
description = "Model of a small teaching Unix kernel: paging, locks, syscalls, shell parsing, user threads and tools"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "operating-system",
    "kernel",
    "paging",
    "spinlock",
    "shell",
    "malloc",
    "elf",
    "education",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Education",
    "Topic :: System :: Operating System Kernels",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
xv6py-threads = "xv6py.uthread:main"
xv6py-wc = "xv6py.tools:wc_main"
xv6py-diff = "xv6py.tools:diff_main"
xv6py-tree = "xv6py.tools:tree_main"

[tool.hatch.build.targets.wheel]
packages = ["xv6py"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
