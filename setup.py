from setuptools import setup, find_packages

setup(name='tickio',
      version='0.1.0',
      description='Cooperative tasks for hosts which grant a fixed slice of CPU time per tick',
      classifiers=[
          "Programming Language :: Python :: 3",
          "License :: OSI Approved :: MIT License",
          "Framework :: Trio",
      ],
      keywords='coroutine scheduler cooperative tick quota',
      license='MIT',
      python_requires='>=3.11',
      packages=find_packages(include=['tickio', 'tickio.*']),
      install_requires=[
          'outcome>=1.3',
          'trio>=0.25',
          'httpx>=0.27',
      ],
      extras_require={
          'test': ['pytest'],
      },
)
