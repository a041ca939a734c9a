from setuptools import setup, find_packages

setup(
    name="sitecms",
    version="0.1.0",
    description="Content sync client for the corporate site CMS with local cache fallback",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    package_data={"sitecms": ["sections.yaml"]},
    python_requires=">=3.8",
    install_requires=[
        "PyYAML>=6.0",
        "pyzmq>=25.0",
        "requests>=2.31.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "black>=23.0.0",
            "pylint>=2.17.0",
        ]
    },
    entry_points={
        "console_scripts": [
            "sitecms=sitecms.cli:main",
        ]
    },
)
