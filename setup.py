from setuptools import setup, find_packages


def parse_requirements():
    with open('requirements.txt') as file:
        requirements = [line.strip() for line in file.readlines()]
    return [line for line in requirements if line and not line.startswith('#')]


if __name__ == '__main__':
    setup(
        name='fsadapters',
        version='1.0',
        description='Async file system and object storage adapters behind one interface',
        package_dir={'': '.'},
        packages=find_packages('.', exclude=['tests', 'tests.*']),
        python_requires='>=3.9',
        install_requires=parse_requirements(),
        extras_require={'test': ['pytest', 'pytest-asyncio']}
    )
