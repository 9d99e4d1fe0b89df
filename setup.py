from setuptools import setup, find_packages

setup(
    name="dahua-nvr",
    version="0.1.0",
    packages=find_packages(include=["dahua_nvr", "dahua_nvr.*"]),
    install_requires=[
        "httpx>=0.25.0",
        "aiofiles>=23.1.0",
        "pydantic>=2.11",
        "pytz>=2023.3",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
            "respx>=0.20",
        ],
    },
    entry_points={
        "console_scripts": [
            "dahua-nvr=dahua_nvr.__main__:main_entry",
        ],
    },
    python_requires=">=3.9",
    description="Client for the HTTP event stream and media file search of Dahua network video recorders",
    keywords="dahua, nvr, camera, alarm, cgi",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
