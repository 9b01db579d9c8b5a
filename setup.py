import logging
import os

from setuptools import find_packages, setup

PACKAGE_NAME = "gradplant"
VERSION = "0.1.0"
DESCRIPTION = "gradplant: Differentiable multibody plant dynamics in JAX"
URL = "<url.to.go.in.here>"
AUTHOR = "gradplant developers"
LICENSE = "(TBD)"
DOWNLOAD_URL = ""
LONG_DESCRIPTION = """
Equations of motion of articulated rigid-body trees (kinematics, inverse
dynamics, penalty contact) evaluated on plain arrays or on forward-mode
autodiff arrays. Pure Python on top of JAX.
"""
CLASSIFIERS = [
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Intended Audience :: Science/Research",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3 :: Only",
    "License :: OSI Approved :: MIT",
    "Topic :: Software Development :: Libraries",
]

cwd = os.path.dirname(os.path.abspath(__file__))
logger = logging.getLogger()
logging.basicConfig(format="%(levelname)s - %(message)s")


def get_requirements():
    return [
        "jax",
        "jaxlib",
        "numpy",
        "tqdm",
    ]


def get_test_requirements():
    return [
        "pytest",
    ]


if __name__ == "__main__":
    setup(
        # Metadata
        name=PACKAGE_NAME,
        version=VERSION,
        author=AUTHOR,
        description=DESCRIPTION,
        url=URL,
        long_description=LONG_DESCRIPTION,
        license=LICENSE,
        python_requires=">=3.9",
        # Package info
        packages=find_packages(exclude=("docs", "tests", "examples")),
        install_requires=get_requirements(),
        extras_require={"test": get_test_requirements()},
        zip_safe=True,
        classifiers=CLASSIFIERS,
    )
