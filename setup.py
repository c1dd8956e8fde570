import setuptools

with open("README.md", "r") as fh:
    long_description = fh.read()

setuptools.setup(
    name="cgbifix",
    version="0.0.1",
    author="Gianluca Pacchiella",
    author_email="gp@ktln2.org",
    description="Repair iOS optimized (CgBI) PNG files",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/gipi/cgbifix",
    packages=setuptools.find_packages(exclude=['tests', 'tests.*']),
    scripts=[
        'scripts/fixpng.py',
        'scripts/pngdisplay.py',
    ],
    install_requires=[
        'numpy',
        'pillow',
    ],
    extras_require={
        'test': ['pytest'],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: GPLv2 License",
        "Operating System :: OS Independent",
    ],
)
