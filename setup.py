import os

import setuptools


def read_requirements(name):
    with open(os.path.join(os.path.dirname(__file__), name)) as requirements:
        return [
            line.strip()
            for line in requirements
            if line.strip() and not line.lstrip().startswith("#")
        ]


setuptools.setup(
    name="hammer-gateway",
    version="0.3.0",
    author="Hammer Authors",
    author_email="chrono@disilla.org",
    license="zlib-acknowledgement",
    description="A Trio WebSocket chat gateway: handshake, heartbeats, channel fanout and live admin events.",
    keywords="chat websocket gateway async trio",
    python_requires=">=3.9",
    install_requires=read_requirements("requirements.txt"),
    extras_require={"test": read_requirements("requirements-test.txt")},
    packages=["hammer"],
    entry_points={"console_scripts": ["hammer = hammer.cmd:main"]},
    classifiers=[
        "Framework :: Trio",
        "Topic :: System :: Networking",
        "Topic :: Communications :: Chat",
        "Programming Language :: Python :: 3",
    ],
)
