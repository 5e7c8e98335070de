from setuptools import setup, find_packages

setup(
    name="playlink",
    version="0.1.0",
    description="Pair a controller with a display and drive its playback over a shared channel",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    python_requires=">=3.10",
    install_requires=[
        "python-osc>=1.8.0",
        "PyYAML>=6.0",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "playlink=playlink.main:main",
        ],
    },
)
