import os

import setuptools

HERE = os.path.dirname(__file__)

setuptools.setup(
    name="chatrelay",
    version="0.1.0",
    description="A single-process chat relay and client built on trio.",
    long_description=open(os.path.join(HERE, "description.md")).read(),
    long_description_content_type="text/markdown",
    keywords="chat relay broadcast network async trio",
    python_requires=">=3.8",
    install_requires=open(os.path.join(HERE, "requirements.txt"))
    .read()
    .strip()
    .split("\n"),
    extras_require={"test": ["pytest", "pytest-trio"]},
    packages=["chatrelay"],
    entry_points={
        "console_scripts": [
            "chatrelay-server=chatrelay.cli:server_main",
            "chatrelay-client=chatrelay.cli:client_main",
        ]
    },
    classifiers=[
        "Framework :: Trio",
        "Topic :: System :: Networking",
        "Topic :: Communications :: Chat",
    ],
)
